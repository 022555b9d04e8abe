from .manager import DownloadManager
from .models import DownloadJob, JobParameters
from .registry import JobRegistry
from .supervisor import ProcessSupervisor

__all__ = ["DownloadJob", "DownloadManager", "JobParameters", "JobRegistry", "ProcessSupervisor"]
