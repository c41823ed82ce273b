"""Origin protection correlation across proxied and direct DNS records."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import UUID

from perimeter.core.logging import get_logger
from perimeter.database.models import DnsRecord
from perimeter.models import (
    ADDRESS_RECORD_TYPES,
    OriginAssessment,
    OriginExposureType,
    OriginReport,
)
from perimeter.scanners.reachability import ReachabilityProber


@dataclass
class _IPGroup:
    proxied: list[DnsRecord] = field(default_factory=list)
    direct: list[DnsRecord] = field(default_factory=list)


class OriginCorrelator:
    """Detects origin IPs that are reachable around the CDN.

    An IP is leaked when it is the target of both a proxied record and a
    non-proxied one: the non-proxied record publishes the address the
    proxy is meant to hide. Works on records already fetched and makes
    no provider calls.
    """

    def __init__(self, prober: ReachabilityProber | None = None) -> None:
        self.logger = get_logger("origin")
        self.prober = prober or ReachabilityProber()

    @staticmethod
    def group_by_ip(records: Sequence[DnsRecord]) -> dict[str, _IPGroup]:
        """Bucket A/AAAA records by target IP into proxied and direct."""
        groups: dict[str, _IPGroup] = {}
        for record in records:
            if record.record_type not in ADDRESS_RECORD_TYPES or not record.content:
                continue
            group = groups.setdefault(record.content, _IPGroup())
            if record.proxied:
                group.proxied.append(record)
            else:
                group.direct.append(record)
        return groups

    async def correlate(
        self,
        records: Sequence[DnsRecord],
        proxy_url: str | None = None,
    ) -> OriginReport:
        """Assess origin protection for every record of an organization."""
        report = OriginReport()
        processed: set[UUID] = set()

        for ip, group in self.group_by_ip(records).items():
            if group.proxied and group.direct:
                await self._assess_leak(ip, group, report, processed, proxy_url)
            elif group.proxied:
                for record in group.proxied:
                    self._assign(report, processed, record, protected=True)
            else:
                for record in group.direct:
                    self._assign(report, processed, record, protected=None)

        # CNAMEs and anything not grouped above carry no origin verdict
        for record in records:
            if record.id not in processed:
                self._assign(report, processed, record, protected=None)

        self.logger.info(
            "origin_correlation_completed",
            records=len(records),
            leaked_ips=len(report.leaked_ips),
            exposed=report.exposed_count,
        )
        return report

    async def _assess_leak(
        self,
        ip: str,
        group: _IPGroup,
        report: OriginReport,
        processed: set[UUID],
        proxy_url: str | None,
    ) -> None:
        report.leaked_ips.append(ip)
        direct_names = ", ".join(r.name for r in group.direct)
        proxied_names = ", ".join(r.name for r in group.proxied)

        for record in group.proxied:
            if record.id in processed:
                continue
            reachable = await self.prober.probe_origin(ip, record.name, proxy_url)
            details = f"Origin IP {ip} leaked via non-proxied record(s): {direct_names}"
            if reachable:
                details += ". Origin also accepts direct HTTPS connections."
            self._assign(
                report,
                processed,
                record,
                protected=False,
                exposure_type=OriginExposureType.BOTH if reachable else OriginExposureType.IP_LEAK,
                details=details,
            )

        for record in group.direct:
            self._assign(
                report,
                processed,
                record,
                protected=False,
                exposure_type=OriginExposureType.IP_LEAK,
                details=f"Exposes origin IP {ip} used by proxied domain(s): {proxied_names}",
            )

        self.logger.warning(
            "origin_ip_leaked",
            ip=ip,
            proxied=proxied_names,
            direct=direct_names,
        )

    @staticmethod
    def _assign(
        report: OriginReport,
        processed: set[UUID],
        record: DnsRecord,
        protected: bool | None,
        exposure_type: OriginExposureType | None = None,
        details: str | None = None,
    ) -> None:
        if record.id in processed:
            return
        processed.add(record.id)
        report.assessments[record.id] = OriginAssessment(
            record_id=record.id,
            origin_protected=protected,
            origin_exposure_type=exposure_type,
            origin_exposure_details=details,
        )
