"""Site stylesheet: theme CSS variables plus the plain CSS files in the styles dir."""

import logging
from pathlib import Path

from mosswiki.config import ThemeConfig, theme_hash
from mosswiki.core.cache import StampedCache, newest_mtime

logger = logging.getLogger(__name__)

# Files that feed the compiled stylesheet.
STYLE_SUFFIXES = frozenset({".css"})

DEFAULT_SANS = (
    'system-ui, "Segoe UI", Roboto, Helvetica, Arial, sans-serif, '
    '"Apple Color Emoji", "Segoe UI Emoji", "Segoe UI Symbol"'
)
DEFAULT_MONO = "ui-monospace, SFMono-Regular, SF Mono, Menlo, monospace"

PALETTE_VARS = [
    ("light", "light"),
    ("lightgray", "lightgray"),
    ("gray", "gray"),
    ("darkgray", "darkgray"),
    ("dark", "dark"),
    ("secondary", "secondary"),
    ("tertiary", "tertiary"),
    ("highlight", "highlight"),
    ("textHighlight", "text_highlight"),
]


def theme_css_variables(theme: ThemeConfig) -> str:
    """CSS custom properties for the light and dark palettes and fonts."""
    fonts = theme.typography
    light = theme.colors.light_mode
    dark = theme.colors.dark_mode

    lines = [":root {"]
    lines += [f"  --{var}: {getattr(light, attr)};" for var, attr in PALETTE_VARS]
    lines += [
        "",
        f'  --titleFont: "{fonts.header}", {DEFAULT_SANS};',
        f'  --headerFont: "{fonts.header}", {DEFAULT_SANS};',
        f'  --bodyFont: "{fonts.body}", {DEFAULT_SANS};',
        f'  --codeFont: "{fonts.code}", {DEFAULT_MONO};',
        "}",
        "",
        ':root[saved-theme="dark"] {',
    ]
    lines += [f"  --{var}: {getattr(dark, attr)};" for var, attr in PALETTE_VARS]
    lines.append("}")
    return "\n".join(lines) + "\n"


def google_font_href(theme: ThemeConfig) -> str:
    fonts = theme.typography
    return (
        f"https://fonts.googleapis.com/css2?family={fonts.code}"
        f"&family={fonts.header}:wght@400;700"
        f"&family={fonts.body}:ital,wght@0,400;0,600;1,400;1,600&display=swap"
    )


class StylesCache:
    """Compiled stylesheet, rebuilt when a CSS file or the theme changes."""

    def __init__(self, styles_dir: Path):
        self.styles_dir = Path(styles_dir)
        self._cache: StampedCache[tuple[str, str]] = StampedCache()

    def newest_source_mtime(self) -> float:
        return newest_mtime(self.styles_dir, STYLE_SUFFIXES)

    def build(self, theme: ThemeConfig) -> tuple[tuple[str, str], float]:
        stamp = self.newest_source_mtime()
        sheets = []
        if self.styles_dir.is_dir():
            paths = (p for p in self.styles_dir.rglob("*") if p.suffix in STYLE_SUFFIXES)
            for path in sorted(paths):
                try:
                    sheets.append(path.read_text(encoding="utf-8"))
                except OSError:
                    logger.warning("Failed to read stylesheet %s", path, exc_info=True)
        css = "\n".join([theme_css_variables(theme), *sheets])
        return (theme_hash(theme), css), stamp

    def compiled_styles(self, theme: ThemeConfig) -> str:
        digest = theme_hash(theme)
        cached = self._cache.get(self.newest_source_mtime())
        if cached is not None and cached[0] == digest:
            return cached[1]
        entry, stamp = self.build(theme)
        stored = self._cache.put(entry, stamp)
        return stored[1] if stored[0] == digest else entry[1]
