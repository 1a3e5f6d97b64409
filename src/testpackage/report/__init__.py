"""Console and XML reporting listeners."""

from testpackage.report.console import ConsoleListener
from testpackage.report.junit_xml import JUnitXmlReportListener

__all__ = ["ConsoleListener", "JUnitXmlReportListener"]
