import argparse
import asyncio
import sys
from termcolor import colored, cprint
from urllib.parse import urlparse

from core.config import Settings
from core.errors import ConfigError
from core.models import Grade
from core.scanner import Scanner
from core.utils import setup_logging, normalize_url
from reports.reporter import Reporter

PHISHSCOPE_BANNER = """
   ___  __   _     __    ____
  / _ \\/ /  (_)__ / /   / __/______  ___  ___
 / ___/ _ \\/ (_-</ _ \\ _\\ \\/ __/ _ \\/ _ \\/ -_)
/_/  /_//_/_/___/_//_//___/\\__/\\___/ .__/\\__/
                                  /_/
   Phishing & Fraud Risk Estimator
"""

GRADE_COLORS = {
    Grade.SAFE: "green",
    Grade.CAUTION: "yellow",
    Grade.DANGER: "red",
}


class PhishScope:
    """
    PhishScope command-line front end: runs one assessment, prints a summary
    and optionally writes a report.
    """
    def __init__(self, args, settings: Settings):
        """
        Args:
            args (argparse.Namespace): Parsed command-line arguments.
            settings (Settings): Runtime settings.
        """
        self.args = args
        self.settings = settings
        self.reporter = Reporter()
        cprint(f"[*] PhishScope initialized for target: {self.args.url}", "blue")

    def _print_summary(self, result):
        for name, section in result.details.items():
            color = GRADE_COLORS[section.grade]
            status = " (probe failed)" if section.failed else ""
            cprint(f"\n[+] {name.upper()}: {section.score} points, {section.grade.value}{status}", color)
            for finding in section.findings:
                cprint(f"    - {finding.message} (Severity: {finding.severity})", "white")

        meta = result.meta
        cprint(f"\n[=] Total risk: {meta.total_risk}/{meta.max_total}", "cyan")
        cprint(f"[=] Safe score: {result.total_score}/100 ({meta.safe_score_100}%)", "cyan")
        cprint(f"[=] Overall grade: {result.overall_grade.value.upper()}",
               GRADE_COLORS[result.overall_grade], attrs=["bold"])

    async def run(self) -> int:
        """
        Executes one assessment and reports on it.

        Returns:
            int: Process exit code.
        """
        scanner = Scanner(self.settings)
        try:
            cprint(f"\n[+] Starting PhishScope analysis for: {self.args.url}", "green", attrs=["bold"])
            result = await scanner.analyze(self.args.url)
        finally:
            await scanner.aclose()

        self._print_summary(result)

        if self.args.output_file:
            if self.reporter.generate_report(result, self.args.output_format, self.args.output_file):
                cprint(f"\n[+] Report saved to: {self.args.output_file}", "green")
            else:
                cprint(f"\n[-] Could not write report to: {self.args.output_file}", "red")
                return 1
        elif self.args.output_format == "json":
            print(self.reporter.render(result, "json"))
        return 0


def serve(settings: Settings):
    """Runs the HTTP API under uvicorn."""
    import uvicorn
    from api.server import create_app

    cprint(f"[*] PhishScope API listening on http://{settings.host}:{settings.port}", "green")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


def main():
    """
    Main function to parse arguments and run PhishScope.
    """
    cprint(PHISHSCOPE_BANNER, "cyan", attrs=["bold"])

    parser = argparse.ArgumentParser(
        description=f"{colored('PhishScope: Phishing & Fraud Risk Estimator', 'cyan', attrs=['bold'])}\n"
                    f"{colored('Scores a URL across URL, header, TLS, vulnerability, WHOIS and DNS signals.', 'white')}",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        "-u", "--url",
        help=f"{colored('Target URL or domain to assess (e.g., https://example.com)', 'white')}",
        type=str
    )
    parser.add_argument(
        "-o", "--output-file",
        help=f"{colored('Output file path for the report (e.g., report.html, report.json).', 'white')}",
        type=str
    )
    parser.add_argument(
        "--output-format",
        help=f"{colored('Report format (html, json, text). Default: text.', 'white')}",
        default="text",
        choices=["html", "json", "text"]
    )
    parser.add_argument(
        "-w", "--weights-file",
        help=f"{colored('JSON file overriding rule weights.', 'white')}",
        type=str
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help=f"{colored('Enable verbose output (more detailed logging).', 'white')}"
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help=f"{colored('Run the HTTP API instead of a single assessment.', 'white')}"
    )
    parser.add_argument("--host", type=str, help=f"{colored('API bind address.', 'white')}")
    parser.add_argument("--port", type=int, help=f"{colored('API port.', 'white')}")

    args = parser.parse_args()

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        cprint(f"\n[ERROR] Invalid configuration: {e}", "red", attrs=["bold"])
        sys.exit(2)

    settings.verbose = settings.verbose or args.verbose
    if args.weights_file:
        settings.weights_file = args.weights_file
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port

    setup_logging(settings.verbose)

    if args.serve:
        serve(settings)
        return

    if not args.url:
        parser.error("the following arguments are required: -u/--url (or use --serve)")

    if args.output_format == "html" and not args.output_file:
        safe_domain = "".join(c for c in (urlparse(normalize_url(args.url)).netloc) if c.isalnum() or c == '.')
        args.output_file = f"phishscope_report_{safe_domain}.{args.output_format}"
        cprint(f"[*] No output file specified. Using default: {args.output_file}", "yellow")

    try:
        exit_code = asyncio.run(PhishScope(args, settings).run())
    except ConfigError as e:
        cprint(f"\n[ERROR] Invalid configuration: {e}", "red", attrs=["bold"])
        sys.exit(2)
    except Exception as e:
        cprint(f"\n[CRITICAL ERROR] Analysis failed: {e}", "red", attrs=["bold"])
        if settings.verbose:
            import traceback
            traceback.print_exc()
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
