#!/usr/bin/env python
"""
Tests for the JSON settings file and the document registry.
"""
import gc
import json
import sys
import tempfile
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dataio.configuration import Config, DEFAULT_MAX_PARKED_LOGS
from dataio.document_registry import DocumentRegistry, DocumentToken


def test_config_round_trip():
    with tempfile.TemporaryDirectory() as tmp:
        cfg = Config(max_parked_logs=3, log_level="debug", config_folder=tmp)
        assert cfg.log_level == "DEBUG"
        cfg.save()
        assert cfg.config_path.exists()
        assert not cfg.config_path.with_suffix(".json.tmp").exists()

        loaded = Config.load(cfg.config_path)
        assert loaded.max_parked_logs == 3
        assert loaded.log_level == "DEBUG"
        assert loaded.config_folder == tmp
    print("✓ config round trip")


def test_config_defaults_for_missing_or_bad_file():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "settings.json"
        missing = Config.load(path)
        assert missing.max_parked_logs == DEFAULT_MAX_PARKED_LOGS
        assert missing.config_path == path

        path.write_text("{not json", encoding="utf-8")
        broken = Config.load(path)
        assert broken.max_parked_logs == DEFAULT_MAX_PARKED_LOGS
        assert broken.log_level == "INFO"

        path.write_text(json.dumps({"max_parked_logs": -4, "log_level": "chatty"}), encoding="utf-8")
        odd = Config.load(path)
        assert odd.max_parked_logs == 0
        assert odd.log_level == "INFO"
    print("✓ config fallbacks")


def test_config_load_requires_path():
    with pytest.raises(ValueError):
        Config.load(None)
    print("✓ load needs a path")


class Doc:
    def __init__(self, filename):
        self.filename = filename


def test_registry_tokens_are_stable():
    registry = DocumentRegistry()
    a, b = Doc("a.pcf"), Doc("b.pcf")
    ta = registry.register(a)
    assert registry.register(a) == ta
    tb = registry.register(b, label="background")
    assert ta != tb
    assert ta.label == "a.pcf"
    assert str(tb).startswith("background#")
    assert registry.lookup(ta) is a
    assert registry.token_for(b) == tb
    assert len(registry) == 2
    # labels do not take part in identity
    assert DocumentToken(ta.serial, "renamed") == ta
    print("✓ stable tokens")


def test_registry_does_not_keep_documents_alive():
    registry = DocumentRegistry()
    doc = Doc("a.pcf")
    token = registry.register(doc)
    del doc
    gc.collect()
    assert not registry.is_alive(token)
    assert registry.lookup(token) is None
    assert len(registry) == 0

    # a new document gets a new token even if it reuses the old address
    token2 = registry.register(Doc("b.pcf"))
    assert token2 != token
    print("✓ weak references")


def test_registry_forget_and_null():
    registry = DocumentRegistry()
    doc = Doc("a.pcf")
    token = registry.register(doc)
    registry.forget(token)
    assert not registry.is_alive(token)
    assert registry.token_for(doc) is None
    registry.forget(token)
    assert registry.token_for(None) is None
    assert registry.lookup(None) is None
    with pytest.raises(ValueError):
        registry.register(None)
    print("✓ forget")


def main():
    tests = [obj for name, obj in sorted(globals().items()) if name.startswith("test_") and callable(obj)]
    failed = 0
    for test in tests:
        try:
            test()
        except Exception as e:
            failed += 1
            print(f"✗ {test.__name__}: {type(e).__name__}: {e}")
    print(f"\n{len(tests) - failed}/{len(tests)} tests passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
