"""
Patch deployment for the confpatch framework
Runs rule sets in order, triggers post-apply commands and reports the outcome
"""

import logging
import socket
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from tabulate import tabulate

from .models import CommandResult, PatchResult, PatchStatus, PostApplyCommand, count_by_status
from .patcher import DEFAULT_DATE_FORMAT, ConfigPatcher
from .backup import DEFAULT_SUFFIX
from .rulesets import RULESET_CLASSES, RuleSet

logger = logging.getLogger(__name__)


def build_rulesets(names: Optional[List[str]] = None, root: str = '/',
                   settings: Optional[Dict] = None) -> List[RuleSet]:
    """Instantiate rule sets by name, in the order given (default: all)"""
    available = {}
    for cls in RULESET_CLASSES:
        ruleset = cls(root=root, settings=settings)
        available[ruleset.get_name()] = ruleset

    rulesets = []
    for name in names or list(available):
        if name not in available:
            raise ValueError(f"Rule set {name} not found (available: {', '.join(available)})")
        rulesets.append(available[name])
    return rulesets


def has_failures(results: Dict[str, List[PatchResult]]) -> bool:
    return any(not r.success for ruleset_results in results.values() for r in ruleset_results)


class PatchOrchestrator:
    """Orchestrates the patching process"""

    def __init__(self, patcher: ConfigPatcher, rulesets: List[RuleSet], runner=None):
        self.patcher = patcher
        self.rulesets = rulesets
        # Fabric/Invoke context used for post-apply commands
        self.runner = runner
        self.command_results: Dict[str, List[CommandResult]] = {}

    def apply_all(self) -> Dict[str, List[PatchResult]]:
        """
        Apply every applicable rule set in order

        Every rule is built before the first one is applied, so an invalid
        rules file aborts the run before any file is touched.

        Returns:
            Dictionary mapping rule set names to their results
        """
        plan = []
        for ruleset in self.rulesets:
            name = ruleset.get_name()
            if not ruleset.is_applicable():
                logger.info(f"Rule set {name} is not applicable to this system")
                continue
            plan.append((ruleset, ruleset.get_rules(), ruleset.get_post_apply_commands()))

        results = {}
        for ruleset, rules, commands in plan:
            name = ruleset.get_name()
            logger.info(f"\n--- Rule set: {name} ---")
            ruleset_results = self.patcher.apply_all(rules)
            results.setdefault(name, []).extend(ruleset_results)

            command_results = self.run_post_apply(ruleset, ruleset_results, commands)
            if command_results:
                self.command_results[name] = command_results

        return results

    def run_post_apply(self, ruleset: RuleSet, results: List[PatchResult],
                       commands: Optional[List[PostApplyCommand]] = None) -> List[CommandResult]:
        """
        Run the rule set's post-apply commands if it changed something and
        nothing failed. A failing required command skips the commands after it.
        """
        if commands is None:
            commands = ruleset.get_post_apply_commands()
        if not commands:
            return []

        name = ruleset.get_name()
        if self.patcher.dry_run:
            for command in commands:
                logger.info(f"[DRY RUN] Would run: {command.command}")
            return []
        if not any(r.changed for r in results):
            logger.debug(f"No changes in {name}, skipping post-apply commands")
            return []
        if has_failures({name: results}):
            logger.warning(f"Rule set {name} had failures, skipping post-apply commands")
            return []
        if self.runner is None:
            logger.warning(f"No command runner available, skipping post-apply commands for {name}")
            return []

        command_results = []
        for command in commands:
            logger.info(f"Running: {command.command}")
            try:
                res = self.runner.run(command.command, warn=True, hide=True)
                result = CommandResult(
                    success=res.ok,
                    command=command.command,
                    description=command.description,
                    output=res.stdout.strip() if res.stdout else "",
                    error=(res.stderr.strip() or "Command failed") if not res.ok else None
                )
            except Exception as e:
                result = CommandResult(False, command.command, command.description, error=str(e))

            command_results.append(result)
            if result.success:
                logger.info(f"  ✓ {command.description}")
            elif command.required:
                logger.error(f"  ✗ {command.description} failed: {result.error}")
                break
            else:
                logger.warning(f"  ✗ {command.description} failed: {result.error}")

        return command_results

    def get_summary(self, results: Dict[str, List[PatchResult]]) -> str:
        """Generate a summary of patch results"""
        table_data = []
        for ruleset_name, ruleset_results in results.items():
            for result in ruleset_results:
                status = f"{result.status.value.upper()} ({result.reason.value})"
                if result.dry_run:
                    status += " [dry run]"
                description = result.description
                if len(description) > 50:
                    description = description[:50] + "..."
                table_data.append([ruleset_name, status, description, result.error or ""])

        summary_lines = [
            "Patch Summary",
            "=" * 50,
            tabulate(table_data, headers=["Rule set", "Status", "Description", "Error"],
                     tablefmt="simple"),
        ]

        for ruleset_name, ruleset_results in results.items():
            counts = count_by_status(ruleset_results)
            summary_lines.append(f"\n{ruleset_name}:")
            summary_lines.append(f"  Total rules: {len(ruleset_results)}")
            summary_lines.append(f"  Applied: {counts[PatchStatus.APPLIED]}")
            summary_lines.append(f"  Skipped: {counts[PatchStatus.SKIPPED]}")
            summary_lines.append(f"  Failed: {counts[PatchStatus.FAILED]}")

            if counts[PatchStatus.FAILED]:
                summary_lines.append("  Failed rules:")
                for result in ruleset_results:
                    if not result.success:
                        summary_lines.append(f"    - {result.description}: {result.error}")

            for command in self.command_results.get(ruleset_name, []):
                mark = "✓" if command.success else "✗"
                summary_lines.append(f"  {mark} {command.description}")

        if self.patcher.backups:
            summary_lines.append("\nBackups:")
            for record in self.patcher.backups:
                note = " (kept existing)" if record.reused else ""
                summary_lines.append(f"  {record.original_path} -> {record.backup_path}{note}")

        return "\n".join(summary_lines)


class PatchDeployer:
    """Builds the patcher and rule sets from configuration and runs them"""

    def __init__(self, config: Optional[Dict] = None, runner=None):
        self.config = config or {}
        self.runner = runner

    def deploy(self, dry_run: bool = False, rulesets: Optional[List[str]] = None,
               rules_file: Optional[str] = None, root: Optional[str] = None,
               run_date: Optional[str] = None) -> Dict:
        """
        Apply the configured rule sets

        Args:
            dry_run: If True, only show what would be changed
            rulesets: Rule set names to apply (None = config or all)
            rules_file: YAML rules file for the 'custom' rule set
            root: Directory the absolute target paths are resolved under
            run_date: Date stamp used in backup names (default: today)

        Returns:
            Dictionary with results, summary and report path
        """
        root = root or self.config.get('root', '/')
        backup_config = self.config.get('backup') or {}
        settings = dict(self.config.get('settings') or {})
        settings['rules_file'] = rules_file or self.config.get('rules_file')

        patcher = ConfigPatcher(
            run_date=run_date,
            backup_suffix=backup_config.get('suffix', DEFAULT_SUFFIX),
            date_format=backup_config.get('date_format', DEFAULT_DATE_FORMAT),
            dry_run=dry_run
        )
        selected = build_rulesets(rulesets or self.config.get('rulesets'), root=root, settings=settings)

        logger.info(f"Starting patch run {patcher.run_date} (root: {root})")
        if dry_run:
            logger.info("DRY RUN MODE - No changes will be made")

        orchestrator = PatchOrchestrator(patcher, selected, runner=self.runner)
        results = orchestrator.apply_all()
        summary = orchestrator.get_summary(results)
        # Only rule failures decide the exit status, command failures are reported
        failed = has_failures(results)
        for name, commands in orchestrator.command_results.items():
            for command in commands:
                if not command.success:
                    logger.warning(f"Post-apply command for {name} failed: {command.command}")

        report_path = self._generate_report(results, orchestrator.command_results, summary, dry_run)

        return {
            'results': results,
            'commands': orchestrator.command_results,
            'summary': summary,
            'backups': patcher.backups,
            'report_file': report_path,
            'failed': failed,
        }

    def _generate_report(self, results: Dict, command_results: Dict, summary: str,
                         dry_run: bool) -> str:
        """Generate markdown report for this run"""
        report_dir = Path(self.config.get('report_dir', 'logs/reports'))
        hostname = socket.gethostname()
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        report_path = report_dir / f"REPORT_{hostname}_{timestamp}.md"

        try:
            report_dir.mkdir(parents=True, exist_ok=True)
            with open(report_path, 'w') as f:
                f.write(f"# Patch Report: {hostname}\n")
                f.write(f"**Date**: {datetime.now().isoformat()}\n")
                f.write(f"**Mode**: {'dry run' if dry_run else 'live'}\n\n")

                f.write("## Execution Summary\n")
                f.write("```\n")
                f.write(summary)
                f.write("\n```\n\n")

                f.write("## Changed Files\n")
                changed = sorted({r.target_path for rs in results.values() for r in rs if r.changed})
                if changed:
                    for path in changed:
                        f.write(f"- `{path}`\n")
                else:
                    f.write("*No files changed.*\n")
                f.write("\n")

                f.write("## Post-apply Commands\n")
                if command_results:
                    for ruleset_name, commands in command_results.items():
                        for command in commands:
                            status = "ok" if command.success else f"failed: {command.error}"
                            f.write(f"- {ruleset_name}: `{command.command}` ({status})\n")
                else:
                    f.write("*No commands run.*\n")

                f.write("\n---\nGenerated by confpatch\n")

            logger.info(f"Report generated: {report_path}")
            return str(report_path)

        except OSError as e:
            logger.error(f"Failed to generate report: {e}")
            return ""
