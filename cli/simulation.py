"""Stand-in positions used only when the live feed cannot be reached."""

from __future__ import annotations

import random
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Roughly +/-100 m per tick at the latitudes the fleet runs in.
COORDINATE_JITTER = 0.002
SPEED_JITTER = 15.0


def simulate_step(
    previous: Dict[str, Any], rng: Optional[random.Random] = None
) -> Dict[str, Any]:
    """Perturb the last known position and flag the result as simulated."""

    rng = rng or random.Random()
    speed = max(0.0, float(previous.get("speed") or 0.0) + (rng.random() - 0.5) * SPEED_JITTER)
    return {
        **previous,
        "lat": float(previous["lat"]) + (rng.random() - 0.5) * COORDINATE_JITTER,
        "lon": float(previous["lon"]) + (rng.random() - 0.5) * COORDINATE_JITTER,
        "speed": float(round(speed)),
        "updated": datetime.now(timezone.utc).isoformat(),
        "simulated": True,
    }
