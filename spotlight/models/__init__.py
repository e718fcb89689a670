# Models module
from spotlight.models.segment import Segment
from spotlight.models.highlight import Highlight
from spotlight.models.preference import UserPreference
from spotlight.models.job import Job

__all__ = ["Segment", "Highlight", "UserPreference", "Job"]
