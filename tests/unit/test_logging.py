# PATH: tests/unit/test_logging.py
"""
Tests for structured logging and the logging contract.

Contract: no custom kwargs to logger calls; context only via
extra={"context": {...}}.
"""

import ast
import json
import logging
import tempfile
import unittest
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List

from core.logging import (
    ConsoleFormatter,
    JSONFormatter,
    clear_global_context,
    get_logger,
    log_error,
    log_resolution,
    set_global_context,
    setup_logging,
)

PROJECT_ROOT = Path(__file__).parent.parent.parent
SOURCE_PACKAGES = ["core", "chains", "tokens", "config"]
SOURCE_MODULES = ["client.py", "cli.py"]


class TestLoggingContractEnforcement(unittest.TestCase):
    """AST-based scan of the source tree for invalid logger kwargs."""

    ALLOWED_KWARGS = {"exc_info", "extra", "stack_info", "stacklevel"}

    def _find_logger_violations(self, source_code: str) -> List[Dict[str, Any]]:
        violations = []
        tree = ast.parse(source_code)

        for node in ast.walk(tree):
            if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
                continue
            if node.func.attr not in ("debug", "info", "warning", "error", "critical", "exception"):
                continue

            obj = node.func.value
            if isinstance(obj, ast.Name):
                is_logger = "log" in obj.id.lower()
            elif isinstance(obj, ast.Attribute):
                is_logger = "log" in obj.attr.lower()
            else:
                is_logger = False
            if not is_logger:
                continue

            for kw in node.keywords:
                if kw.arg and kw.arg not in self.ALLOWED_KWARGS:
                    violations.append({
                        "line": node.lineno,
                        "method": node.func.attr,
                        "invalid_kwarg": kw.arg,
                    })
        return violations

    def _source_files(self) -> List[Path]:
        files = [PROJECT_ROOT / name for name in SOURCE_MODULES]
        for package in SOURCE_PACKAGES:
            files.extend((PROJECT_ROOT / package).rglob("*.py"))
        return [f for f in files if f.exists()]

    def test_source_has_no_invalid_kwargs(self):
        files = self._source_files()
        self.assertGreater(len(files), 0, "No files scanned!")

        msg = ""
        for filepath in files:
            for v in self._find_logger_violations(filepath.read_text(encoding="utf-8")):
                msg += f"  {filepath.name}:{v['line']}: logger.{v['method']}(..., {v['invalid_kwarg']}=...)\n"
        if msg:
            self.fail(f"Logging violations:\n{msg}")

    def test_detector_flags_kwargs(self):
        violations = self._find_logger_violations("logger.info('x', block=1)\n")
        self.assertEqual(violations[0]["invalid_kwarg"], "block")


class TestFormatters(unittest.TestCase):
    """JSON and console formatting."""

    def setUp(self):
        clear_global_context()
        self.stream = StringIO()
        self.handler = logging.StreamHandler(self.stream)
        self.raw_logger = logging.getLogger(f"test_formatters_{id(self)}")
        self.raw_logger.setLevel(logging.DEBUG)
        self.raw_logger.handlers = [self.handler]
        self.raw_logger.propagate = False

    def tearDown(self):
        clear_global_context()

    def test_json_includes_context(self):
        self.handler.setFormatter(JSONFormatter())
        self.raw_logger.info("Resolved", extra={"context": {"block_number": 32}})

        entry = json.loads(self.stream.getvalue())
        self.assertEqual(entry["level"], "INFO")
        self.assertEqual(entry["message"], "Resolved")
        self.assertEqual(entry["context"], {"block_number": 32})

    def test_json_merges_global_context(self):
        set_global_context(service="evm-client")
        self.handler.setFormatter(JSONFormatter())
        self.raw_logger.warning("Slow", extra={"context": {"probes": 9}})

        entry = json.loads(self.stream.getvalue())
        self.assertEqual(entry["context"], {"service": "evm-client", "probes": 9})

    def test_json_without_context(self):
        self.handler.setFormatter(JSONFormatter())
        self.raw_logger.info("plain")

        self.assertNotIn("context", json.loads(self.stream.getvalue()))

    def test_json_exception(self):
        self.handler.setFormatter(JSONFormatter())
        try:
            raise ValueError("boom")
        except ValueError:
            self.raw_logger.error("failed", exc_info=True)

        entry = json.loads(self.stream.getvalue())
        self.assertIn("ValueError: boom", entry["context"]["exception"])

    def test_console_summarizes_context(self):
        self.handler.setFormatter(ConsoleFormatter())
        self.raw_logger.info("Resolved", extra={"context": {"a": 1, "b": 2, "c": 3, "d": 4}})

        line = self.stream.getvalue()
        self.assertIn("| INFO", line)
        self.assertIn("a=1, b=2, c=3", line)
        self.assertIn("(+1 more)", line)


class TestContextAdapter(unittest.TestCase):
    """get_logger() default context and helpers."""

    def setUp(self):
        self.records = []

        class CapturingHandler(logging.Handler):
            def __init__(self, records):
                super().__init__()
                self.records = records

            def emit(self, record):
                self.records.append(record)

        self.name = f"test_adapter_{id(self)}"
        base = logging.getLogger(self.name)
        base.setLevel(logging.DEBUG)
        base.handlers = [CapturingHandler(self.records)]
        base.propagate = False

    def test_default_context_merged(self):
        logger = get_logger(self.name, chain_id=1)
        logger.info("hello", extra={"context": {"block": 5}})

        self.assertEqual(self.records[0].context, {"chain_id": 1, "block": 5})

    def test_log_resolution(self):
        log_resolution(get_logger(self.name), timestamp=1325, block_number=32, probes=1, requests=2)

        record = self.records[0]
        self.assertEqual(record.getMessage(), "Resolved timestamp 1325 -> block 32")
        self.assertEqual(record.context["probes"], 1)

    def test_log_error(self):
        log_error(get_logger(self.name), "UPSTREAM_TIMEOUT", "node slow", endpoint="https://rpc")

        record = self.records[0]
        self.assertEqual(record.levelno, logging.ERROR)
        self.assertEqual(record.getMessage(), "[UPSTREAM_TIMEOUT] node slow")
        self.assertEqual(record.context["endpoint"], "https://rpc")


class TestSetupLogging(unittest.TestCase):
    """setup_logging() handler wiring."""

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level

    def tearDown(self):
        for handler in self.root.handlers[:]:
            self.root.removeHandler(handler)
            handler.close()
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)

    def test_console_handler_and_level(self):
        setup_logging(level="debug")

        self.assertEqual(self.root.level, logging.DEBUG)
        self.assertEqual(len(self.root.handlers), 1)
        self.assertIsInstance(self.root.handlers[0].formatter, ConsoleFormatter)
        self.assertEqual(logging.getLogger("httpx").level, logging.WARNING)

    def test_json_file_handler(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_file = Path(tmp) / "client.log"
            setup_logging(level="INFO", json_output=True, log_file=str(log_file))

            self.assertEqual(len(self.root.handlers), 2)
            logging.getLogger("test_setup").info("written", extra={"context": {"k": "v"}})
            for handler in self.root.handlers:
                handler.flush()

            entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
            self.assertEqual(entry["message"], "written")
            self.assertEqual(entry["context"], {"k": "v"})

            for handler in self.root.handlers[:]:
                self.root.removeHandler(handler)
                handler.close()


if __name__ == "__main__":
    unittest.main()
