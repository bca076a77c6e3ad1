"""CVRF-style XML serialization of bulletins."""

from datetime import date
from xml.etree import ElementTree as ET

from defect_manager.defect.models import Bulletin


CVRF_NAMESPACE = "http://www.icasi.org/CVRF/schema/cvrf/1.1"
ISSUE_URL = "https://gitee.com/{org}/{repo}/issues/{number}"


class BulletinError(Exception):
    """Raised when a bulletin cannot be serialized."""


def _cpe(version: str) -> str:
    name = version.removeprefix("openEuler-")
    return f"cpe:/a:openEuler:openEuler:{name}"


def _text(parent: ET.Element, tag: str, text: str = "", **attrib: str) -> ET.Element:
    element = ET.SubElement(parent, tag, attrib)
    element.text = text
    return element


class BulletinFormatter:
    """Builds the XML document uploaded for a bulletin."""

    def __init__(self, publisher: str = "openEuler", contact: str = "openeuler-security@openeuler.org"):
        self.publisher = publisher
        self.contact = contact

    def generate(self, bulletin: Bulletin, release_date: date | None = None) -> bytes:
        if not bulletin.identification:
            raise BulletinError("bulletin has no identification")
        if not bulletin.defects:
            raise BulletinError(f"{bulletin.identification} has no defects")
        if not bulletin.product_tree:
            raise BulletinError(f"{bulletin.identification} has no product tree")

        released = (release_date or date.today()).isoformat()
        severity = bulletin.highest_severity.value if bulletin.highest_severity else ""

        root = ET.Element("cvrfdoc", {"xmlns": CVRF_NAMESPACE})
        _text(root, "DocumentTitle", f"An update for {bulletin.component} is now available for "
              f"{', '.join(bulletin.unpublished_version)}", **{"xml:lang": "en"})
        _text(root, "DocumentType", "Bug Advisory")

        publisher = ET.SubElement(root, "DocumentPublisher", {"Type": "Vendor"})
        _text(publisher, "ContactDetails", self.contact)
        _text(publisher, "IssuingAuthority", f"{self.publisher} security committee")

        tracking = ET.SubElement(root, "DocumentTracking")
        identification = ET.SubElement(tracking, "Identification")
        _text(identification, "ID", bulletin.identification)
        _text(tracking, "Status", "Final")
        _text(tracking, "Version", "1.0")
        history = ET.SubElement(tracking, "RevisionHistory")
        revision = ET.SubElement(history, "Revision")
        _text(revision, "Number", "1.0")
        _text(revision, "Date", released)
        _text(revision, "Description", "Initial")
        _text(tracking, "InitialReleaseDate", released)
        _text(tracking, "CurrentReleaseDate", released)

        notes = ET.SubElement(root, "DocumentNotes")
        _text(notes, "Note", f"{bulletin.component} bug fix update",
              Title="Synopsis", Type="General", Ordinal="1", **{"xml:lang": "en"})
        _text(notes, "Note", "\n".join(d.description.strip() for d in bulletin.defects),
              Title="Description", Type="General", Ordinal="2", **{"xml:lang": "en"})
        _text(notes, "Note", severity, Title="Severity", Type="General", Ordinal="3", **{"xml:lang": "en"})
        _text(notes, "Note", bulletin.component, Title="Affected Component", Type="General",
              Ordinal="4", **{"xml:lang": "en"})

        tree = ET.SubElement(root, "ProductTree", {"xmlns": "http://www.icasi.org/CVRF/schema/prod/1.1"})
        products = ET.SubElement(tree, "Branch", {"Type": "Product Name", "Name": self.publisher})
        for version in bulletin.unpublished_version:
            _text(products, "FullProductName", version, ProductID=version, CPE=_cpe(version))
        for arch in bulletin.product_tree.arches():
            branch = ET.SubElement(tree, "Branch", {"Type": "Package Arch", "Name": arch})
            for product in bulletin.product_tree.for_arch(arch):
                _text(branch, "FullProductName", product.name,
                      ProductID=product.name.removesuffix(".rpm"), CPE=_cpe(product.version))

        for ordinal, defect in enumerate(bulletin.defects, start=1):
            vuln = ET.SubElement(root, "Vulnerability", {
                "Ordinal": str(ordinal),
                "xmlns": "http://www.icasi.org/CVRF/schema/vuln/1.1",
            })
            vuln_notes = ET.SubElement(vuln, "Notes")
            _text(vuln_notes, "Note", defect.description.strip(), Title="Vulnerability Description",
                  Type="General", Ordinal="1", **{"xml:lang": "en"})
            _text(vuln, "ReleaseDate", released)
            _text(vuln, "ID", defect.issue.number)
            status = ET.SubElement(vuln, "ProductStatuses")
            fixed = ET.SubElement(status, "Status", {"Type": "Fixed"})
            for version in defect.unpublished_version:
                _text(fixed, "ProductID", version)
            threats = ET.SubElement(vuln, "Threats")
            threat = ET.SubElement(threats, "Threat", {"Type": "Impact"})
            _text(threat, "Description", defect.severity_level.value if defect.severity_level else "")
            remediations = ET.SubElement(vuln, "Remediations")
            remediation = ET.SubElement(remediations, "Remediation", {"Type": "Vendor Fix"})
            _text(remediation, "Description", f"{bulletin.component} bug fix update")
            _text(remediation, "DATE", released)
            _text(remediation, "URL", ISSUE_URL.format(
                org=defect.issue.org, repo=defect.issue.repo, number=defect.issue.number,
            ))

        try:
            ET.indent(root)
            return ET.tostring(root, encoding="utf-8", xml_declaration=True)
        except (TypeError, ValueError) as e:
            raise BulletinError(f"{bulletin.identification} to xml error: {e}") from e
