"""Case context resolution strategies.

A deduction is only eligible when its case resolves all the way to an
organization. Two interchangeable strategies produce the same answer with a
different I/O shape:

- BatchCaseContextResolver: cases and vendors are prefetched into maps with
  one query each, before matching starts.
- EagerCaseContextResolver: cases and vendors arrive joined onto each
  deduction record by the loading query.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING

from ...exceptions import UnresolvableReferenceError
from ...utils.logging import get_logger
from ..domain.value_objects import CaseContext, CaseReference, InvoiceRecord, VendorProfile

if TYPE_CHECKING:
    from ...storage.repository import VendorCaseRepository, VendorRepository

logger = get_logger(__name__)


class ICaseContextResolver(ABC):
    """Resolve a deduction to the case, vendor and organization it bills against."""

    @abstractmethod
    def resolve_case(self, deduction: InvoiceRecord) -> CaseReference | None:
        """Return the case the deduction reverses, if it can be found."""

    @abstractmethod
    def resolve_vendor(self, case: CaseReference) -> VendorProfile | None:
        """Return the vendor owning the case, if it can be found."""

    def resolve(self, deduction: InvoiceRecord) -> CaseContext | None:
        """Return the deduction's case context, or None when any link is missing.

        Unresolvable references make the deduction ineligible; they are
        logged at debug level and never raised.
        """
        if deduction.reversal_for_vendor_case_id is None:
            return self._unresolved(deduction, "case_link")

        case = self.resolve_case(deduction)
        if case is None:
            return self._unresolved(deduction, "case")
        if not case.is_reviewed:
            return self._unresolved(deduction, "case_validity")

        vendor = self.resolve_vendor(case)
        if vendor is None:
            return self._unresolved(deduction, "vendor")
        if vendor.organization_id is None:
            return self._unresolved(deduction, "organization")

        return CaseContext(
            case_id=case.id,
            vendor_id=vendor.id,
            organization_id=vendor.organization_id,
            rate=vendor.rate,
        )

    def _unresolved(self, deduction: InvoiceRecord, missing: str) -> None:
        error = UnresolvableReferenceError(
            f"Cannot resolve {missing} for deduction {deduction.id}",
            deduction_id=deduction.id,
            missing=missing,
            context={"case_id": deduction.reversal_for_vendor_case_id},
        )
        logger.debug("case_context_unresolved", error=str(error), **error.context)
        return None

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class BatchCaseContextResolver(ICaseContextResolver):
    """Resolve against maps prefetched before matching."""

    def __init__(
        self,
        cases: Iterable[CaseReference] = (),
        vendors: Iterable[VendorProfile] = (),
    ) -> None:
        self.cases_by_id: dict[int, CaseReference] = {case.id: case for case in cases}
        self.vendors_by_id: dict[int, VendorProfile] = {vendor.id: vendor for vendor in vendors}

    @classmethod
    def prefetch(
        cls,
        deductions: Iterable[InvoiceRecord],
        case_repo: "VendorCaseRepository",
        vendor_repo: "VendorRepository",
    ) -> "BatchCaseContextResolver":
        """Load every case referenced by ``deductions`` and every vendor owning one."""
        case_ids = sorted(
            {
                d.reversal_for_vendor_case_id
                for d in deductions
                if d.reversal_for_vendor_case_id is not None
            }
        )
        cases = case_repo.get_by_ids(case_ids)
        vendor_ids = sorted({c.vendor_id for c in cases if c.vendor_id is not None})
        vendors = vendor_repo.get_by_ids(vendor_ids)

        logger.info(
            "case_context_prefetched",
            cases_requested=len(case_ids),
            cases_found=len(cases),
            vendors_found=len(vendors),
        )
        return cls(cases, vendors)

    def resolve_case(self, deduction: InvoiceRecord) -> CaseReference | None:
        if deduction.reversal_for_vendor_case_id is None:
            return None
        return self.cases_by_id.get(deduction.reversal_for_vendor_case_id)

    def resolve_vendor(self, case: CaseReference) -> VendorProfile | None:
        if case.vendor_id is None:
            return None
        return self.vendors_by_id.get(case.vendor_id)


class EagerCaseContextResolver(ICaseContextResolver):
    """Resolve from the case and vendor joined onto each deduction record."""

    def resolve_case(self, deduction: InvoiceRecord) -> CaseReference | None:
        case = deduction.case
        if case is None or case.id != deduction.reversal_for_vendor_case_id:
            return None
        return case

    def resolve_vendor(self, case: CaseReference) -> VendorProfile | None:
        return case.vendor
