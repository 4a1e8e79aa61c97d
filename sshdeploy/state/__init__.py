"""Run state (upload progress)"""
from .progress_manager import ProgressTracker, FileProgress

__all__ = ["ProgressTracker", "FileProgress"]
