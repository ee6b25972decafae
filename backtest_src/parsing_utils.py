# backtest_src/parsing_utils.py

from typing import Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)


def parse_model_list(values: Optional[Iterable[str]], default: str = "prophet,structural") -> List[str]:
    """
    Flatten repeated and comma-separated ``--model`` values into unique names.

    Order of first appearance is kept.

    Examples
    --------
    >>> parse_model_list(["prophet,structural", "naive_mean"])
    ['prophet', 'structural', 'naive_mean']
    >>> parse_model_list(None)
    ['prophet', 'structural']
    """
    raw = list(values) if values else [default]
    names: List[str] = []
    for value in raw:
        for name in str(value).split(","):
            name = name.strip().lower()
            if name and name not in names:
                names.append(name)
    return names


def parse_intervals_arg(s: Optional[str], default: str = "80,95") -> List[int]:
    """
    Parse a CLI intervals argument like '80,95' into sorted unique integer coverage levels.

    Parameters
    ----------
    s : str, optional
        CLI intervals argument (e.g., "80,95" or "90")
    default : str, default="80,95"
        Used when ``s`` is empty

    Returns
    -------
    List[int]
        Sorted list of unique coverage levels between 1 and 99

    Raises
    ------
    ValueError
        If a value is not an integer or lies outside 1..99

    Examples
    --------
    >>> parse_intervals_arg("95,80")
    [80, 95]
    """
    txt = (s or default).strip()
    vals = sorted({int(x.strip()) for x in txt.split(",") if x.strip() != ""})
    bad = [v for v in vals if not 1 <= v < 100]
    if bad or not vals:
        raise ValueError(f"Interval levels must lie between 1 and 99, got '{txt}'")
    return vals


def parse_column_list(s: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated column list; None or blank gives None."""
    if not s:
        return None
    cols = [c.strip() for c in s.split(",") if c.strip()]
    return cols or None
