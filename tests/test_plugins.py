from extrato.models import DialectInfo, FileType, ParseResult
from extrato.plugins import PluginHooks, load_plugins
from extrato.registry import DialectRegistry


def _dummy_parse(path, options=None):
    return ParseResult()


def _info(key):
    return DialectInfo(
        key=key, name=key.title(), file_types=[FileType.CSV],
        can_parse=lambda hint, lines: False, parse=_dummy_parse,
    )


class FakeEntryPoint:
    def __init__(self, name, module):
        self.name = name
        self.module = module

    def load(self):
        return self.module


class FakePlugin:
    @staticmethod
    def register(hooks):
        hooks.add_dialect(_info("sicredi"))


def test_add_dialect():
    hooks = PluginHooks()
    hooks.add_dialect(_info("test"))
    assert len(hooks.dialects) == 1


def test_load_plugins_appends_after_builtins(monkeypatch):
    monkeypatch.setattr(
        "importlib.metadata.entry_points",
        lambda group: [FakeEntryPoint("sicredi", FakePlugin)],
    )
    reg = DialectRegistry([_info("builtin")])
    hooks = load_plugins(reg)
    assert [d.key for d in hooks.dialects] == ["sicredi"]
    assert [d.key for d in reg.list_all()] == ["builtin", "sicredi"]


def test_plugin_without_register_is_ignored(monkeypatch, caplog):
    monkeypatch.setattr(
        "importlib.metadata.entry_points",
        lambda group: [FakeEntryPoint("empty", object())],
    )
    reg = DialectRegistry()
    load_plugins(reg)
    assert reg.list_all() == []
    assert "Plugin empty has no register function" in caplog.text


def test_plugin_can_replace_builtin(monkeypatch):
    class Override:
        @staticmethod
        def register(hooks):
            hooks.add_dialect(_info("builtin"))

    monkeypatch.setattr(
        "importlib.metadata.entry_points",
        lambda group: [FakeEntryPoint("override", Override)],
    )
    original = _info("builtin")
    reg = DialectRegistry([original, _info("other")])
    load_plugins(reg)
    assert [d.key for d in reg.list_all()] == ["builtin", "other"]
    assert reg.get_by_key("builtin") is not original
