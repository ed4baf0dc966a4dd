import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import ruleset_loader


class RulesetLoaderFrozenTests(unittest.TestCase):
    def tearDown(self) -> None:
        ruleset_loader.clear_cache()

    def test_load_ruleset_resolve_meipass_when_frozen(self) -> None:
        ruleset_id = "TEST_FROZEN_RULESET"

        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            rs_dir = base / "rulesets" / ruleset_id
            rs_dir.mkdir(parents=True, exist_ok=True)

            metadata = {
                "ruleset_id": ruleset_id,
                "vigencia_inicio": "2005-01-01",
                "vigencia_fim": None,
                "descricao": "ruleset de teste frozen",
            }
            with open(rs_dir / "metadata.json", "w", encoding="utf-8") as f:
                json.dump(metadata, f, ensure_ascii=False)

            ruleset_loader.clear_cache()
            with patch.object(ruleset_loader.sys, "frozen", True, create=True), patch.object(
                ruleset_loader.sys, "_MEIPASS", str(base), create=True
            ):
                loaded = ruleset_loader.load_ruleset(ruleset_id)

            self.assertEqual(loaded["ruleset_id"], ruleset_id)

    def test_non_object_payload_raises_value_error(self) -> None:
        ruleset_id = "TEST_LIST_PAYLOAD"

        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            rs_dir = base / "rulesets" / ruleset_id
            rs_dir.mkdir(parents=True, exist_ok=True)
            with open(rs_dir / "mva_ncm.json", "w", encoding="utf-8") as f:
                json.dump([1, 2, 3], f)

            ruleset_loader.clear_cache()
            with patch.object(ruleset_loader, "_runtime_base_dir", return_value=str(base)):
                with self.assertRaises(ValueError):
                    ruleset_loader.get_mva_ncm_table(ruleset_id)

    def test_missing_file_raises_file_not_found(self) -> None:
        ruleset_id = "TEST_MISSING_FILE"

        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            (base / "rulesets" / ruleset_id).mkdir(parents=True, exist_ok=True)

            ruleset_loader.clear_cache()
            with patch.object(ruleset_loader, "_runtime_base_dir", return_value=str(base)):
                with self.assertRaises(FileNotFoundError):
                    ruleset_loader.get_calculo_params(ruleset_id)


if __name__ == "__main__":
    unittest.main()
