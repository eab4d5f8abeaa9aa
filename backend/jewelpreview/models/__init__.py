"""ORM Models: SQLAlchemy declarative models for jobs and the subjects they render.

Invariants:
    - All models inherit from Base (db/base.py)
    - PreviewJob is the only table the worker loop writes

Design Decisions:
    - One file per entity for locality (ADR: ExMA max 3-4 files to understand a feature)
    - All models imported here so Base.metadata is complete before create_all / autogenerate
"""

from jewelpreview.models.preview_job import PreviewJob  # noqa: F401
from jewelpreview.models.design_configuration import DesignConfiguration  # noqa: F401
from jewelpreview.models.upgrade_analysis import UpgradeAnalysis  # noqa: F401
