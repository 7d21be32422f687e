"""Engine module access and ephemeris data discovery."""

from __future__ import annotations

from .swe import SWISSEPH_MODULE, has_swe, reset_swe, swe
from .utils import get_se_ephe_path, has_ephemeris_files, iter_candidate_paths

__all__ = [
    "SWISSEPH_MODULE",
    "get_se_ephe_path",
    "has_ephemeris_files",
    "has_swe",
    "iter_candidate_paths",
    "reset_swe",
    "swe",
]
