import shlex
from dataclasses import dataclass, field
from typing import Callable, Optional

from pydantic_settings import BaseSettings

from schemas import Directive, Info

# Applied to every convert call, after the per-request directives.
DEFAULT_TUNING = (
    Directive("-dither", "None"),
    Directive("-define", "jpeg:fancy-upsampling=off"),
    Directive("-define", "png:compression-filter=5"),
    Directive("-define", "png:compression-level=9"),
    Directive("-define", "png:compression-strategy=0"),
    Directive("-define", "png:exclude-chunk=bKGD,cHRM,EXIF,gAMA,iCCP,iTXt,sRGB,tEXt,zCCP,zTXt,date"),
    Directive("-define", "heic:speed=6"),
    Directive("-interlace", "None"),
    Directive("-colorspace", "sRGB"),
    Directive("-sampling-factor", "4:2:0"),
    Directive("+profile", "!icc,*"),
)

DirectivesHook = Callable[[str, bytes, Info, Info], list[Directive]]


@dataclass(frozen=True)
class ProcessorConfig:
    """Immutable configuration injected into the Processor.

    - tuning: static codec directives appended to every transform
    - extra_directives: operator-supplied directives for every operation
    - directives_hook: called per operation ("resize", "fit", "optimise")
      with (op, source bytes, source info, target info); target info only
      carries opaque/width/height
    - debug: log every codec command at INFO instead of DEBUG
    - strict_geometry: fail Resize with InputError when the size can't be parsed
    """

    tuning: tuple[Directive, ...] = DEFAULT_TUNING
    extra_directives: tuple[Directive, ...] = ()
    directives_hook: Optional[DirectivesHook] = field(default=None, compare=False)
    debug: bool = False
    strict_geometry: bool = False


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # --- Server ---
    port: int = 8080
    cache_max_age: int = 86400

    # --- Codec ---
    codec: str = "imagemagick"  # "imagemagick" (process) or "pillow" (in-process)
    im_convert: str = "convert"
    im_identify: str = "identify"
    additional_args: str = ""  # e.g. "-define webp:alpha-quality=80"
    tool_timeout_seconds: int = 0  # 0 = no timeout
    debug: bool = False
    strict_geometry: bool = False

    # --- Source images ---
    max_file_size_mb: int = 32
    max_file_size_bytes: int = 0  # Computed in model_post_init
    url_fetch_timeout: int = 30
    url_fetch_max_redirects: int = 5

    # --- Logging ---
    log_level: str = "INFO"

    model_config = {"env_prefix": "IMGFIT_", "case_sensitive": False}

    def model_post_init(self, __context) -> None:
        if self.max_file_size_bytes == 0:
            self.max_file_size_bytes = self.max_file_size_mb * 1024 * 1024

    def processor_config(self, directives_hook: Optional[DirectivesHook] = None) -> ProcessorConfig:
        return ProcessorConfig(
            extra_directives=parse_directives(self.additional_args),
            directives_hook=directives_hook,
            debug=self.debug,
            strict_geometry=self.strict_geometry,
        )


def parse_directives(args: str) -> tuple[Directive, ...]:
    """Split a shell-style argument string into directives.

    Every token starting with "-" or "+" opens a new directive; a following
    token that doesn't is taken as its value.

    >>> parse_directives("-define webp:alpha-quality=80 -strip")
    (Directive(option='-define', value='webp:alpha-quality=80'), Directive(option='-strip', value=None))
    """
    directives = []
    for token in shlex.split(args):
        if token[:1] in ("-", "+") or not directives or directives[-1].value is not None:
            directives.append(Directive(token))
        else:
            directives[-1] = Directive(directives[-1].option, token)
    return tuple(directives)


settings = Settings()
