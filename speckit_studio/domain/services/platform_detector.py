"""Platform detector - keyword substring matching over free text."""

# Order matters: it is the order tags are reported in and charters are collected in.
PLATFORM_KEYWORDS: dict[str, tuple[str, ...]] = {
    "backend": ("backend", "api", "server", "java", "node", "nest"),
    "web": ("web", "frontend", "react", "vue", "browser"),
    "app": ("app", "mobile", "ios", "android", "flutter"),
    "pc": ("pc", "desktop", "windows", "mac", "electron"),
    "firmware": ("firmware", "embedded", "hardware", "iot"),
    "ui": ("ui", "design", "ux", "figma"),
}

DEFAULT_PLATFORMS: tuple[str, ...] = ("backend", "web")


def detect_platforms(text: str) -> list[str]:
    """Platform tags whose keywords occur as substrings of text (case-insensitive).

    Substring, not token, matching: "api" hits "rapid", "app" hits "application".
    Charter folder and template file names key off the same tags.
    Falls back to backend + web when nothing matches.
    """
    lowered = (text or "").lower()
    found = [tag for tag, keywords in PLATFORM_KEYWORDS.items() if any(k in lowered for k in keywords)]
    return found or list(DEFAULT_PLATFORMS)
