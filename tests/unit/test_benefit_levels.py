import random

from vcbroker.services.benefit_levels import (
    BENEFIT_LEVELS_BY_TEMPLATE,
    FALLBACK_BENEFIT_LEVEL,
    RandomBenefitLevelPicker,
)


class TestRandomBenefitLevelPicker:

    def test_draws_from_template_candidates(self):
        picker = RandomBenefitLevelPicker(random.Random(7))
        for _ in range(20):
            assert picker(2) in BENEFIT_LEVELS_BY_TEMPLATE[2]

    def test_single_candidate_templates_are_deterministic(self):
        picker = RandomBenefitLevelPicker(random.Random(1))
        assert picker(3) == "無分級"

    def test_unknown_template_falls_back(self):
        picker = RandomBenefitLevelPicker(random.Random(1))
        assert picker(999) == FALLBACK_BENEFIT_LEVEL == "NA"

    def test_custom_level_table(self):
        picker = RandomBenefitLevelPicker(random.Random(1), levels={1: ["gold"], 2: []})
        assert picker(1) == "gold"
        assert picker(2) == "NA"

    def test_seeded_rng_is_reproducible(self):
        first = [RandomBenefitLevelPicker(random.Random(42))(1) for _ in range(5)]
        second = [RandomBenefitLevelPicker(random.Random(42))(1) for _ in range(5)]
        assert first == second
