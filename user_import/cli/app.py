from __future__ import annotations

import argparse
import sys
from pathlib import Path

from ..client.api import DashboardApiClient
from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config, load_env_file
from ..errors import DuplicateUserError, ImportFileError
from ..importfile.normalizer import load_import_file
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.error_record import ImportErrorRecord
from ..models.import_record import ImportFile
from ..services.controller import ImportBatchController
from ..services.step_plan import build_step_plan
from ..services.summary import render_summary_line
from .session import OperatorSession

"""CLI entrypoint.

Flow:
- Load ``.env`` (override) and ``config/import.yml``
- Load and normalize the import file (structural errors are fatal)
- ``--inspect``: print users and step plans, no network calls
- Otherwise: duplicate pre-check, interactive session, summary
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2
EXIT_INTERRUPTED = 130


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="dashboard-user-import",
        description="Interactive bulk user import for the ops dashboard",
    )
    p.add_argument("file", help="Import file (.json, .yml, .yaml, .csv, .xlsx)")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Config file path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect", action="store_true", help="Print users and step plans then exit")
    return p.parse_args(argv)


def _inspect(import_file: ImportFile) -> int:
    print(f"FILE: {import_file.source} users={len(import_file)}")
    for record in import_file.users:
        plan = [s.value for s in build_step_plan(record)]
        print(
            f"  USER: {record.username} email={record.email or '-'} role={record.role or '(default)'} "
            f"instance_admin={'yes' if record.instance_admin else 'no'} steps={plan}"
        )
    if import_file.instance_admin_users:
        print("  instance admin requested: " + ", ".join(import_file.instance_admin_users))
    return EXIT_SUCCESS_ALL


def _flush_error_log(error_log: ErrorLogBuffer) -> None:
    logger = setup_logging()
    path = error_log.flush()
    if path is not None:
        logger.info(f"error log written: {path}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # [] を渡されたときに sys.argv が混入しないよう None のときだけ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    if args.debug:
        set_debug()

    load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    error_log = ErrorLogBuffer(cfg.logs_dir)
    try:
        import_file = load_import_file(Path(args.file))
    except ImportFileError as e:
        logger.error(f"import file: {e}")
        error_log.append(ImportErrorRecord.create("", "", "STRUCTURAL", str(e)))
        _flush_error_log(error_log)
        return EXIT_FATAL

    logger.info(f"Loaded {len(import_file)} user(s) from: {import_file.source}")
    if args.inspect:
        return _inspect(import_file)

    with DashboardApiClient(cfg.api) as api:
        controller = ImportBatchController(api, cfg.settings, error_log)
        session = OperatorSession(controller)
        try:
            summary = session.run(import_file)
        except DuplicateUserError:
            # pre-check 側で ERROR ログ出力済み
            return EXIT_FATAL
        except KeyboardInterrupt:
            controller.close()
            logger.warning("interrupted")
            return EXIT_INTERRUPTED
        finally:
            _flush_error_log(error_log)

    if summary is None:
        logger.warning("import cancelled by operator")
        return EXIT_FATAL

    logger.info(summary.message)
    summary_line = render_summary_line(len(import_file), summary)
    # log_summary が "SUMMARY " を付けるので除く
    log_summary(summary_line[len("SUMMARY "):])
    return EXIT_SUCCESS_ALL if summary.all_created else EXIT_PARTIAL_FAILURE
