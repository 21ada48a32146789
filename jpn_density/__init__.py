from .classify import SqrtScale, ThresholdScale, legend_items
from .config import RenderConfig
from .join import join_density
from .loader import DensityRecord, load_density_records, load_regions
from .pipeline import run

__all__ = [
    "DensityRecord",
    "RenderConfig",
    "SqrtScale",
    "ThresholdScale",
    "join_density",
    "legend_items",
    "load_density_records",
    "load_regions",
    "run",
]
