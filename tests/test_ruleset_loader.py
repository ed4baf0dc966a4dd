import unittest

from ruleset_loader import (
    DEFAULT_RULESET_ID,
    get_baseline_calculo_params,
    get_baseline_cest_segmentos,
    get_baseline_mva_ncm_table,
    get_baseline_mva_origem,
    get_baseline_mva_segmentos,
    get_calculo_params,
    get_cest_segmentos,
    get_mva_ncm_table,
    get_mva_origem,
    get_mva_segmentos,
    load_ruleset,
)


class RulesetLoaderTests(unittest.TestCase):
    def test_load_ruleset_metadata(self) -> None:
        metadata = load_ruleset(DEFAULT_RULESET_ID)
        self.assertEqual(metadata.get("ruleset_id"), "ICMS_ST_V1")
        self.assertEqual(metadata.get("vigencia_inicio"), "2005-01-01")
        self.assertIsNone(metadata.get("vigencia_fim"))

    def test_calculo_params_constantes(self) -> None:
        params = get_calculo_params(DEFAULT_RULESET_ID)
        self.assertEqual(params.get("aliquota_interna_padrao"), 20.5)
        self.assertEqual(params.get("divisor_base_normal"), 0.795)
        self.assertEqual(params.get("situacao_tributaria_normal"), "NORMAL")
        panettone = params.get("excecao_panettone", {})
        self.assertEqual(panettone.get("ncm"), "19052010")
        self.assertEqual(panettone.get("cest"), "1705200")

    def test_mva_ncm_table_contains_known_ncm(self) -> None:
        table = get_mva_ncm_table(DEFAULT_RULESET_ID)
        entry = table["ncm"]["22011000"]
        self.assertEqual(entry["mva4"], 189.81)
        self.assertEqual(entry["mva12"], 165.66)

    def test_mva_origem_contains_oito_ncms_especiais(self) -> None:
        origem = get_mva_origem(DEFAULT_RULESET_ID)
        self.assertEqual(len(origem.get("ncms_especiais", [])), 8)
        self.assertEqual(origem["mva_por_origem"]["nao_signataria_sul_sudeste"], 45)

    def test_segmentos_and_cest(self) -> None:
        segmentos = get_mva_segmentos(DEFAULT_RULESET_ID)
        self.assertIn("autopecas", segmentos)
        self.assertIn("materiais_construcao", segmentos)
        cest = get_cest_segmentos(DEFAULT_RULESET_ID)
        self.assertEqual(cest.get("segmento_padrao"), "Antecipação")
        self.assertEqual(cest["segmentos"]["17"], "Produtos Alimentícios")

    def test_returns_copy_not_cached_reference(self) -> None:
        params = get_calculo_params(DEFAULT_RULESET_ID)
        params["aliquota_interna_padrao"] = 99
        self.assertEqual(get_calculo_params(DEFAULT_RULESET_ID)["aliquota_interna_padrao"], 20.5)

    def test_baselines_match_current_files(self) -> None:
        self.assertEqual(get_baseline_mva_ncm_table(DEFAULT_RULESET_ID), get_mva_ncm_table(DEFAULT_RULESET_ID))
        self.assertEqual(get_baseline_mva_segmentos(DEFAULT_RULESET_ID), get_mva_segmentos(DEFAULT_RULESET_ID))
        self.assertEqual(get_baseline_mva_origem(DEFAULT_RULESET_ID), get_mva_origem(DEFAULT_RULESET_ID))
        self.assertEqual(get_baseline_calculo_params(DEFAULT_RULESET_ID), get_calculo_params(DEFAULT_RULESET_ID))
        self.assertEqual(get_baseline_cest_segmentos(DEFAULT_RULESET_ID), get_cest_segmentos(DEFAULT_RULESET_ID))

    def test_missing_ruleset_raises_file_not_found(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_ruleset("RULESET_INEXISTENTE")


if __name__ == "__main__":
    unittest.main()
