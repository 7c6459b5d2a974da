"""
Typed wrappers around decoded Marketo response envelopes.

Every REST response shares the same envelope:

    {"requestId": "...", "success": true, "result": [...],
     "errors": [{"code": "...", "message": "..."}], "nextPageToken": "..."}

The classes below expose those fields plus a few accessors per endpoint
family. Records inside ``result`` are passed through as plain dicts.
"""

import copy
import csv
import io
from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Tuple


@dataclass(frozen=True)
class ApiErrorDetail:
    """A single error or warning entry from the envelope."""
    code: str
    message: str

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


def _details(entries) -> Tuple[ApiErrorDetail, ...]:
    details = []
    for entry in entries or []:
        if isinstance(entry, dict):
            details.append(ApiErrorDetail(str(entry.get('code', '')), str(entry.get('message', ''))))
        else:
            details.append(ApiErrorDetail('', str(entry)))
    return tuple(details)


class Response:
    """Base response with the common envelope fields."""

    def __init__(self, data: Optional[Dict[str, Any]]):
        self._data = copy.deepcopy(data or {})
        result = self._data.get('result')
        self._result = tuple(result) if isinstance(result, list) else ()
        self._errors = _details(self._data.get('errors'))
        self._warnings = _details(self._data.get('warnings'))

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(success={self.success}, "
                f"results={len(self._result)}, errors={len(self._errors)})")

    @property
    def success(self) -> bool:
        return bool(self._data.get('success', False))

    def is_success(self) -> bool:
        return self.success

    @property
    def request_id(self) -> Optional[str]:
        return self._data.get('requestId')

    @property
    def result(self) -> Tuple[Dict[str, Any], ...]:
        return self._result

    @property
    def errors(self) -> Tuple[ApiErrorDetail, ...]:
        return self._errors

    @property
    def error(self) -> Optional[ApiErrorDetail]:
        """First error, if any."""
        return self._errors[0] if self._errors else None

    @property
    def warnings(self) -> Tuple[ApiErrorDetail, ...]:
        return self._warnings

    @property
    def next_page_token(self) -> Optional[str]:
        return self._data.get('nextPageToken')

    @property
    def more_result(self) -> bool:
        return bool(self._data.get('moreResult', False))

    def to_dict(self) -> Dict[str, Any]:
        """Return a copy of the decoded JSON body."""
        return copy.deepcopy(self._data)

    def _first(self) -> Optional[Dict[str, Any]]:
        return self._result[0] if self._result else None

    def _find(self, record_id) -> Optional[Dict[str, Any]]:
        for record in self._result:
            if str(record.get('id')) == str(record_id):
                return record
        return None


class StatusResponse(Response):
    """Response whose records carry a per-lead status."""

    def get_status(self, lead_id) -> Optional[str]:
        """Status reported for a lead ID, e.g. 'created', 'updated', 'skipped'."""
        record = self._find(lead_id)
        return record.get('status') if record else None


# =============================================================================
# Leads
# =============================================================================

class GetLeadResponse(Response):
    @property
    def lead(self) -> Optional[Dict[str, Any]]:
        return self._first()


class GetLeadsResponse(Response):
    @property
    def leads(self) -> Tuple[Dict[str, Any], ...]:
        return self._result


class CreateOrUpdateLeadsResponse(StatusResponse):
    pass


class DeleteLeadResponse(StatusResponse):
    pass


class AssociateLeadResponse(Response):
    pass


class GetLeadPartitionsResponse(Response):
    @property
    def partitions(self) -> Tuple[Dict[str, Any], ...]:
        return self._result


class GetPagingTokenResponse(Response):
    @property
    def paging_token(self) -> Optional[str]:
        return self.next_page_token


class GetLeadChangesResponse(Response):
    @property
    def changes(self) -> Tuple[Dict[str, Any], ...]:
        return self._result


# =============================================================================
# Lists
# =============================================================================

class GetListResponse(Response):
    @property
    def lead_list(self) -> Optional[Dict[str, Any]]:
        return self._first()


class GetListsResponse(Response):
    @property
    def lists(self) -> Tuple[Dict[str, Any], ...]:
        return self._result


class AddOrRemoveLeadsToListResponse(StatusResponse):
    pass


class IsMemberOfListResponse(StatusResponse):
    def is_member_of_list(self, lead_id) -> Optional[bool]:
        """True/False for a lead in the result, None if it was not reported."""
        status = self.get_status(lead_id)
        if status is None:
            return None
        return status == 'memberof'


# =============================================================================
# Campaigns
# =============================================================================

class GetCampaignResponse(Response):
    @property
    def campaign(self) -> Optional[Dict[str, Any]]:
        return self._first()


class GetCampaignsResponse(Response):
    @property
    def campaigns(self) -> Tuple[Dict[str, Any], ...]:
        return self._result


class RequestCampaignResponse(Response):
    pass


class ScheduleCampaignResponse(Response):
    pass


# =============================================================================
# Email assets
# =============================================================================

class EmailResponse(Response):
    pass


class UpdateEmailContentInEditableSectionResponse(EmailResponse):
    pass


class ApproveEmailResponse(EmailResponse):
    @property
    def email(self) -> Optional[Dict[str, Any]]:
        return self._first()


# =============================================================================
# Bulk import
# =============================================================================

class BulkImportResponse(Response):
    """Response for an import request or a batch status lookup."""

    @property
    def batch_id(self) -> Optional[int]:
        record = self._first()
        return record.get('batchId') if record else None

    @property
    def status(self) -> Optional[str]:
        """Batch status, e.g. 'Queued', 'Importing', 'Complete', 'Failed'."""
        record = self._first()
        return record.get('status') if record else None


class BulkImportFileResponse:
    """CSV file returned by the batch failures and warnings endpoints."""

    def __init__(self, batch_id: int, content: str):
        self.batch_id = batch_id
        self.content = content

    def __repr__(self) -> str:
        return f"BulkImportFileResponse(batch_id={self.batch_id}, rows={len(self.rows)})"

    @property
    def rows(self) -> List[Dict[str, str]]:
        """Parsed CSV rows keyed by header."""
        if not self.content.strip():
            return []
        return list(csv.DictReader(io.StringIO(self.content)))
