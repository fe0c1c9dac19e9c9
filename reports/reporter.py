import logging
import json
import os
from datetime import datetime
from typing import Dict, Any
from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.models import AssessmentResult


class Reporter:
    """
    Generates structured reports in various formats (HTML, JSON, plain text)
    from an assessment result.
    """
    SUPPORTED_FORMATS = ("json", "text", "html")

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        # Templates live in the 'templates' subdirectory next to this module
        template_dir = os.path.join(os.path.dirname(__file__), "templates")
        self.env = Environment(loader=FileSystemLoader(template_dir), autoescape=select_autoescape(["html"]))
        self.logger.debug(f"Jinja2 templates loaded from: {template_dir}")

    def _format_json_report(self, data: Dict[str, Any]) -> str:
        """Formats assessment data into a JSON string."""
        return json.dumps(data, indent=4)

    def _format_text_report(self, data: Dict[str, Any]) -> str:
        """Formats assessment data into a plain text string."""
        meta = data["meta"]
        report_lines = [f"--- PhishScope Report for {data.get('target', 'N/A')} ---"]
        report_lines.append(f"Report Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        report_lines.append(f"Safe Score: {data['totalScore']}/100 ({meta['safeScore100']}%)")
        report_lines.append(f"Total Risk: {meta['totalRisk']}/{meta['maxTotal']}")
        report_lines.append(f"Overall Grade: {data['overallGrade'].upper()}")

        for name, section in data["details"].items():
            status = " [FAILED]" if section.get("failed") else ""
            report_lines.append(f"\n--- {name.upper()} ({section['score']} points, {section['grade']}){status} ---")
            if section["findings"]:
                for finding in section["findings"]:
                    report_lines.append(f"  - {finding['message']} (Severity: {finding['severity']})")
            else:
                report_lines.append("  No issues found.")

        report_lines.append("\n--- End of Report ---")
        return "\n".join(report_lines)

    def _generate_html_report(self, data: Dict[str, Any]) -> str:
        """Generates an HTML report using a Jinja2 template."""
        template = self.env.get_template("report.html")
        return template.render(
            result=data,
            report_date=datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        )

    def render(self, result: AssessmentResult, output_format: str) -> str:
        """
        Renders an assessment in the given format.

        Raises:
            ValueError: If the format is not supported.
        """
        data = result.to_dict()
        if output_format == "json":
            return self._format_json_report(data)
        if output_format == "text":
            return self._format_text_report(data)
        if output_format == "html":
            return self._generate_html_report(data)
        raise ValueError(f"Unsupported report format: {output_format}")

    def generate_report(self, result: AssessmentResult, output_format: str, output_file: str) -> bool:
        """
        Generates and saves the report based on the specified format.

        Args:
            result (AssessmentResult): The assessment to report on.
            output_format (str): The desired output format (html, json, text).
            output_file (str): The path to save the report file.

        Returns:
            bool: True if the report was written.
        """
        self.logger.info(f"Generating report in {output_format} format to {output_file}")
        report_content = self.render(result, output_format)

        try:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(report_content)
            self.logger.info(f"Report successfully saved to: {output_file}")
            return True
        except IOError as e:
            self.logger.error(f"Error saving report to {output_file}: {e}")
            return False
