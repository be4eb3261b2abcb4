from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class RiskTier:
    tier: int
    label: str
    label_zh: str
    color: str


# (inclusive upper bound, tier) per Taipei Department of Health Breteau grading.
BRETEAU_TIERS: List[Tuple[float, RiskTier]] = [
    (0, RiskTier(0, "Safe", "安全", "#10b981")),
    (4, RiskTier(1, "Level 1 (very low risk)", "等級1 (極低風險)", "#22c55e")),
    (9, RiskTier(2, "Level 2 (low risk)", "等級2 (低風險)", "#eab308")),
    (19, RiskTier(3, "Level 3 (mild risk)", "等級3 (輕度風險)", "#f59e0b")),
    (34, RiskTier(4, "Level 4 (moderate risk)", "等級4 (中度風險)", "#f97316")),
    (49, RiskTier(5, "Level 5 (moderately high risk)", "等級5 (中高風險)", "#ef4444")),
    (74, RiskTier(6, "Level 6 (high risk)", "等級6 (高風險)", "#dc2626")),
    (99, RiskTier(7, "Level 7 (very high risk)", "等級7 (極高風險)", "#b91c1c")),
    (199, RiskTier(8, "Level 8 (severe risk)", "等級8 (嚴重風險)", "#991b1b")),
]
TOP_TIER = RiskTier(9, "Level 9 (extreme risk)", "等級9 (極嚴重風險)", "#7f1d1d")

NEUTRAL_COLOR = "#d1d5db"


def classify_breteau(index: float) -> RiskTier:
    """Map a non-negative Breteau index onto its risk tier."""
    value = float(index)
    for upper, tier in BRETEAU_TIERS:
        if value <= upper:
            return tier
    return TOP_TIER


def breteau_color(index: float) -> str:
    return classify_breteau(index).color


def risk_label(index: float, *, lang: str = "en") -> str:
    tier = classify_breteau(index)
    return tier.label_zh if lang == "zh" else tier.label


def rgba(color: str, alpha: float = 0.8) -> str:
    hex_ = color.lstrip("#")
    r, g, b = (int(hex_[i : i + 2], 16) for i in (0, 2, 4))
    return f"rgba({r}, {g}, {b}, {alpha})"
