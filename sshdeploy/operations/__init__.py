"""Operations (scan, resolve, transfer, delete, commands)"""
from .scanner import local_list_all, remote_list_all, change_remote_directory
from .conflict import Decision, Resolution, resolve_remote_only
from .transfer import upload_files, copy_uploaded_files, make_temp_upload_dir
from .delete import delete_remote, group_by_depth
from .commands import run_commands

__all__ = [
    "local_list_all", "remote_list_all", "change_remote_directory",
    "Decision", "Resolution", "resolve_remote_only",
    "upload_files", "copy_uploaded_files", "make_temp_upload_dir",
    "delete_remote", "group_by_depth",
    "run_commands",
]
