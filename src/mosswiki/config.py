"""Application configuration."""

import hashlib
import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

PACKAGE_DIR = Path(__file__).parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"


def config_file_path() -> Path:
    """Location of the YAML site configuration file."""
    return Path(os.environ.get("MOSSWIKI_CONFIG_FILE", "config.yml"))


class ThemeFonts(BaseModel):
    header: str = "Schibsted Grotesk"
    body: str = "Source Sans Pro"
    code: str = "IBM Plex Mono"


class ThemePalette(BaseModel):
    light: str
    lightgray: str
    gray: str
    darkgray: str
    dark: str
    secondary: str
    tertiary: str
    highlight: str
    text_highlight: str


def _light_palette() -> ThemePalette:
    return ThemePalette(
        light="#faf8f8",
        lightgray="#e5e5e5",
        gray="#b8b8b8",
        darkgray="#4e4e4e",
        dark="#2b2b2b",
        secondary="#284b63",
        tertiary="#84a59d",
        highlight="rgba(143, 159, 169, 0.15)",
        text_highlight="#fff23688",
    )


def _dark_palette() -> ThemePalette:
    return ThemePalette(
        light="#161618",
        lightgray="#393639",
        gray="#646464",
        darkgray="#d4d4d4",
        dark="#ebebec",
        secondary="#7b97aa",
        tertiary="#84a59d",
        highlight="rgba(143, 159, 169, 0.15)",
        text_highlight="#b3aa0288",
    )


class ThemeColors(BaseModel):
    light_mode: ThemePalette = Field(default_factory=_light_palette)
    dark_mode: ThemePalette = Field(default_factory=_dark_palette)


class ThemeConfig(BaseModel):
    """Visual theme. Changing any value invalidates every cached page."""

    font_origin: str = "googleFonts"
    cdn_caching: bool = True
    typography: ThemeFonts = Field(default_factory=ThemeFonts)
    colors: ThemeColors = Field(default_factory=ThemeColors)


def theme_hash(theme: ThemeConfig) -> str:
    """Stable digest of the serialized theme configuration."""
    return hashlib.sha256(theme.model_dump_json().encode("utf-8")).hexdigest()


class Settings(BaseSettings):
    """Application settings loaded from config.yml and environment variables.

    Environment variables win over the YAML file, which wins over defaults.
    """

    content_dir: Path = Path("content")
    cache_dir: Path = Path("build")
    config_file: Path = Path("config.yml")
    styles_dir: Path = TEMPLATES_DIR / "styles"
    scripts_dir: Path = TEMPLATES_DIR / "scripts"
    debug: bool = False
    page_title: str = "Moss"
    ignore_patterns: list[str] = Field(
        default_factory=lambda: ["private", "templates", ".obsidian"]
    )
    explicit_publish: bool = False
    theme: ThemeConfig = Field(default_factory=ThemeConfig)

    model_config = SettingsConfigDict(
        env_prefix="MOSSWIKI_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=config_file_path()),
            file_secret_settings,
        )


settings = Settings()
