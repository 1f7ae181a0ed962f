import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence, Union

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[,;]")


def _glob_to_regex(glob: str) -> Pattern:
    # Only * and ? are wildcards; everything else is literal
    parts = []
    for ch in glob:
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _tokens(mask: Union[str, Sequence[str]]) -> List[str]:
    if isinstance(mask, (list, tuple)):
        mask = ",".join(mask)
    return [t.strip() for t in _SEPARATORS.split(mask or "") if t.strip()]


@dataclass
class FileMask:
    """
    File-name filter such as "*.py, *.md, !test_*".
    Tokens prefixed with ! exclude; excludes always win over includes.
    """
    includes: List[Pattern] = field(default_factory=list)
    excludes: List[Pattern] = field(default_factory=list)

    @classmethod
    def parse(cls, mask: Optional[Union[str, Sequence[str]]]) -> "FileMask":
        result = cls()
        for token in _tokens(mask or ""):
            is_exclude = token.startswith("!")
            pattern = token[1:].strip() if is_exclude else token
            if not pattern:
                continue
            if is_exclude:
                result.excludes.append(_glob_to_regex(pattern))
            else:
                result.includes.append(_glob_to_regex(pattern))
        return result

    @property
    def is_empty(self) -> bool:
        return not self.includes and not self.excludes

    def matches(self, file_name: str) -> bool:
        if self.includes and not any(p.match(file_name) for p in self.includes):
            return False
        return not any(p.match(file_name) for p in self.excludes)


def validate_file_mask(mask: Optional[str]) -> Optional[str]:
    """
    Returns None when the mask is usable, otherwise a message explaining why
    the search falls back to matching every file.
    """
    try:
        FileMask.parse(mask)
    except (re.error, TypeError) as e:
        return f"Invalid file mask (falling back to match all): {e}"
    return None


def load_file_mask(mask: Optional[str]) -> FileMask:
    problem = validate_file_mask(mask)
    if problem:
        logger.warning(problem)
        return FileMask()
    return FileMask.parse(mask)
