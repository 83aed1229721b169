from extrato.dialects import bradesco, btg, c6, clear, inter, itau, nubank, xp

# Detection order. A card layout must come before the account layout of the
# same bank, and BTG's PDF recognizer before its Excel one.
BUILTIN_DIALECTS = [
    nubank.CARD,
    nubank.ACCOUNT,
    bradesco.DIALECT,
    xp.CARD,
    xp.ACCOUNT,
    c6.DIALECT,
    inter.DIALECT,
    btg.PDF,
    btg.EXCEL,
    itau.EXCEL,
    itau.TXT,
    clear.DIALECT,
]
