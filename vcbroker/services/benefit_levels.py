"""
Benefit level assignment for simulated issuance.

Real benefit levels come from the means test; the simulation draws one
from the candidate set of the template instead. The picker is injectable
so tests (and a future real source) can replace the draw.
"""
import random
from typing import Callable, Dict, List, Optional

FALLBACK_BENEFIT_LEVEL = "NA"

BENEFIT_LEVELS_BY_TEMPLATE: Dict[int, List[str]] = {
    1: ["第一款", "第二款", "第三款"],
    2: ["輕", "中", "重", "極重"],
    3: ["無分級"],
    4: ["1_5倍以下", "1_5倍至2_5倍"],
    5: ["無分級"],
    6: ["低風險", "中風險", "高風險"],
    7: ["無分級"],
    8: ["無分級"],
    9: ["無分級"],
    10: ["輕度", "中度以上"],
}

BenefitLevelPicker = Callable[[int], str]


class RandomBenefitLevelPicker:
    """Draw uniformly from the template's candidates, ``NA`` if it has none."""

    def __init__(self, rng: Optional[random.Random] = None, levels: Optional[Dict[int, List[str]]] = None):
        self.rng = rng or random.Random()
        self.levels = levels if levels is not None else BENEFIT_LEVELS_BY_TEMPLATE

    def __call__(self, template_id: int) -> str:
        candidates = self.levels.get(template_id)
        if not candidates:
            return FALLBACK_BENEFIT_LEVEL
        return self.rng.choice(candidates)
