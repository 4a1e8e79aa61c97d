#!/usr/bin/env python3
"""
sshdeploy  —  deploy a local directory to a server over SFTP/SSH
================================================================

Usage:
  sshdeploy [options] [PROFILE]

Without PROFILE the profile marked isDefault is used, or the only one in
the config file. The config file is sshDeploy.json (or sshDeploy.yaml) in
the current directory, or Properties/sshDeploy.json, unless -c is given.

Exit codes: 0 success, 1 error, 2 cancelled.
"""
import argparse
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sshdeploy",
        description="Deploy a local directory to a server over SFTP/SSH",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("profile", nargs="?", metavar="PROFILE",
                        help="Profile to deploy (default: the default or only profile)")
    parser.add_argument("-c", "--config", metavar="PATH",
                        help="Config file to use instead of sshDeploy.json")
    parser.add_argument("-e", "--encrypt-password", action="store_true",
                        help="Ask for the profile's password and store it encrypted")
    parser.add_argument("-p", "--hide-progress", action="store_true",
                        help="Don't show upload progress")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only show prompts, warnings and errors")
    parser.add_argument("-s", "--single-thread", action="store_true",
                        help="Scan, upload and delete one file at a time")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Show every step (overrides --quiet)")
    from sshdeploy import __version__
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv=None):
    """CLI entry point for sshdeploy"""
    from sshdeploy.core.deploy_engine import DeployOptions, run_deploy

    args = build_parser().parse_args(argv)
    options = DeployOptions(
        profile_name=args.profile,
        config_path=args.config,
        quiet=args.quiet and not args.verbose,
        verbose=args.verbose,
        hide_progress=args.hide_progress,
        single_thread=args.single_thread,
        encrypt_password=args.encrypt_password,
    )
    sys.exit(run_deploy(options))


if __name__ == "__main__":
    main()
