"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use HYPERNOTE_ prefix (e.g., HYPERNOTE_STRICT_MODE=false).

Settings can also be loaded from a .env file in the project root.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use HYPERNOTE_ prefix.

    Examples:
        HYPERNOTE_STRICT_MODE=false
        HYPERNOTE_VALIDATE_OUTPUT=true
        HYPERNOTE_DEBUG_MODE=true
    """

    model_config = SettingsConfigDict(
        env_prefix="HYPERNOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Document configuration
    document_version: str = Field(
        default="1.1.0",
        description="Version string stamped on every compiled document",
    )

    # Compilation configuration
    strict_mode: bool = Field(
        default=True,
        description="Validate structure while tokenizing and fail on the first error",
    )

    convert_styles: bool = Field(
        default=True,
        description="Convert element class attributes into style objects",
    )

    validate_output: bool = Field(
        default=False,
        description="Check every compiled document against the output schema",
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable trace output during compilation (forces verbosity 3)",
    )

    # I/O configuration
    input_pattern: str = Field(
        default="*.md",
        description="Glob selecting source documents inside the input directory",
    )

    output_suffix: str = Field(
        default=".json",
        description="Suffix of compiled output files",
    )

    json_indent: int = Field(
        default=2,
        description="Indentation of written JSON (0 for compact output)",
    )

    def outputName_make(self, input_name: str) -> str:
        """
        Derive the output filename for a source file.

        Args:
            input_name: Source filename (e.g., "feed.md")

        Returns:
            Filename with the source suffix replaced

        Example:
            >>> settings = AppSettings()
            >>> settings.outputName_make("feed.md")
            'feed.json'
        """
        return f"{Path(input_name).stem}{self.output_suffix}"

    def verbosity_resolve(self, verbosity: int) -> int:
        """
        Effective verbosity, taking debug_mode into account.

        Example:
            >>> AppSettings(debug_mode=True).verbosity_resolve(1)
            3
        """
        if self.debug_mode:
            return max(verbosity, 3)
        return verbosity


# Singleton instance - import this in your code
appsettings = AppSettings()
