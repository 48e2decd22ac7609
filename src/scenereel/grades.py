"""Static catalogs of color grading styles and transition styles.

Color grades map a style name to a fixed ffmpeg filter expression. Unknown
names and "none" both resolve to "" (no grading); a missing key is never
an error.
"""

COLOR_GRADES = {
    "warm": "colorbalance=rs=0.1:gs=0.05:bs=-0.1",
    "cool": "colorbalance=rs=-0.1:gs=0.05:bs=0.15",
    "cinematic": "eq=contrast=1.1:brightness=0.02:saturation=0.9,colorbalance=rs=0.05:gs=0:bs=0.08",
    "vintage": "eq=contrast=1.05:saturation=0.7,colorbalance=rs=0.1:gs=0.05:bs=-0.05",
    "none": "",
}

# Transition style → xfade transition name.
TRANSITIONS = {
    "fade": "fade",
    "crossfade": "fade",
    "dissolve": "dissolve",
    "wipeleft": "wipeleft",
    "wiperight": "wiperight",
    "wipeup": "wipeup",
    "wipedown": "wipedown",
    "slideleft": "slideleft",
    "slideright": "slideright",
    "zoomin": "zoomin",
    "circleopen": "circleopen",
}


def color_grade_filter(style: str | None) -> str:
    """Filter expression for a grading style, or "" for no grading."""
    if not style:
        return ""
    return COLOR_GRADES.get(style.strip().lower(), "")


def xfade_transition(style: str) -> str:
    """Resolve a transition style to its xfade name.

    Raises:
        ValueError: Unknown style.
    """
    key = (style or "").strip().lower()
    if key not in TRANSITIONS:
        raise ValueError(
            f"Unknown transition style '{style}'. Valid: {sorted(TRANSITIONS)}"
        )
    return TRANSITIONS[key]
