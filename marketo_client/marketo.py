"""
Marketo REST API Client for lead, list, campaign, email and bulk import operations.

Provides:
- Lead retrieval, create/update and deletion
- Static list membership management
- Smart campaign triggering and scheduling
- Email asset updates and approval
- Bulk CSV lead import and batch status
"""

import logging
import os
import time
from datetime import datetime
from typing import Dict, List, Any, Optional, Union

import requests

from .auth import TokenProvider
from .base_client import MarketoTransport, ApiError, AuthError, ValidationError
from .config import MarketoConfig
from .results import (
    AddOrRemoveLeadsToListResponse,
    ApproveEmailResponse,
    AssociateLeadResponse,
    BulkImportFileResponse,
    BulkImportResponse,
    CreateOrUpdateLeadsResponse,
    DeleteLeadResponse,
    EmailResponse,
    GetCampaignResponse,
    GetCampaignsResponse,
    GetLeadChangesResponse,
    GetLeadPartitionsResponse,
    GetLeadResponse,
    GetLeadsResponse,
    GetListResponse,
    GetListsResponse,
    GetPagingTokenResponse,
    IsMemberOfListResponse,
    RequestCampaignResponse,
    ScheduleCampaignResponse,
    UpdateEmailContentInEditableSectionResponse,
)

logger = logging.getLogger(__name__)

IdOrIds = Union[int, str, List[Union[int, str]]]


class MarketoClient:
    """Client for Marketo REST API interactions.

    Handles:
    - OAuth2 client-credentials authentication (token cached in memory)
    - One method per REST endpoint, returning typed responses
    - Local argument validation before any request is sent

    Marketo reports API-level failures inside the response envelope
    (success=false plus an errors list), so callers should check
    ``response.success``. Transport, decoding and local validation
    problems raise. So do the file downloads and ``get_all_leads_by_list``,
    which raise ApiError when Marketo reports success=false.

    Example:
        config = MarketoConfig(munchkin_id='123-ABC-456',
                               client_id='...', client_secret='...')
        client = MarketoClient(config)
        lead = client.get_lead(318581, ['email', 'firstName']).lead
    """

    def __init__(self, config: MarketoConfig,
                 session: Optional[requests.Session] = None,
                 token_provider: Optional[TokenProvider] = None):
        """Initialize Marketo client.

        Args:
            config: MarketoConfig with instance URL, credentials and settings
            session: Optional requests session shared by auth and API calls
            token_provider: Optional token provider (defaults to one built from config)
        """
        self.config = config
        session = session or requests.Session()

        self.token_provider = token_provider or TokenProvider(
            config.token_url,
            config.client_id,
            config.client_secret,
            timeout=config.default_timeout,
            expiry_buffer=config.token_expiry_buffer,
            session=session,
        )
        self.transport = MarketoTransport(
            config.base_url,
            self.token_provider,
            default_timeout=config.default_timeout,
            session=session,
        )

    @classmethod
    def from_env(cls) -> "MarketoClient":
        """Build a client from MARKETO_* environment variables."""
        return cls(MarketoConfig.from_env())

    def verify_credentials(self) -> bool:
        """Verify that the client ID and secret are accepted.

        Returns:
            True if an access token could be obtained, False otherwise
        """
        try:
            self.token_provider.get_token()
            return True
        except AuthError as e:
            logger.warning(f"Marketo credentials rejected: {e}")
            return False

    # =========================================================================
    # Path helpers
    # =========================================================================

    def _rest(self, path: str) -> str:
        return f"/rest/v{self.config.api_version}/{path}"

    @staticmethod
    def _asset(path: str) -> str:
        return f"/rest/asset/v1/{path}"

    def _bulk(self, path: str) -> str:
        if self.config.bulk:
            return f"/bulk/v1/{path}"
        return self._rest(path)

    # =========================================================================
    # Lead Operations
    # =========================================================================

    def get_lead(self, lead_id: int, fields: Optional[List[str]] = None,
                 extra_params: Optional[Dict] = None) -> GetLeadResponse:
        """Get a lead by ID.

        Args:
            lead_id: Marketo lead ID
            fields: Field names to return (API default fields if omitted)
            extra_params: Additional parameters passed through unchanged

        Returns:
            GetLeadResponse; ``.lead`` is the record or None

        Example:
            lead = client.get_lead(123, ['email']).lead
            print(lead['email'])
        """
        params = _params(extra_params, id=lead_id, fields=_join_fields(fields))
        data = self.transport.request_json('GET', self._rest(f"lead/{lead_id}.json"), params)
        return GetLeadResponse(data)

    def get_lead_by_filter_type(self, filter_type: str, filter_value: str,
                                fields: Optional[List[str]] = None,
                                extra_params: Optional[Dict] = None) -> GetLeadResponse:
        """Get the first lead matching a filter (e.g. email, cookie, id).

        Args:
            filter_type: Lead field to filter on
            filter_value: Value to match
            fields: Field names to return
        """
        params = _params(
            extra_params,
            filterType=filter_type,
            filterValues=filter_value,
            fields=_join_fields(fields),
        )
        data = self.transport.request_json('GET', self._rest("leads.json"), params)
        return GetLeadResponse(data)

    def get_leads_by_filter_type(self, filter_type: str,
                                 filter_values: Union[str, List[str]],
                                 fields: Optional[List[str]] = None,
                                 next_page_token: Optional[str] = None,
                                 extra_params: Optional[Dict] = None) -> GetLeadsResponse:
        """Get multiple leads by filter type.

        Args:
            filter_type: Lead field to filter on
            filter_values: Comma separated string or list of values
            fields: Field names to return
            next_page_token: Token from a previous page
        """
        params = _params(
            extra_params,
            filterType=filter_type,
            filterValues=_join_fields(_as_list(filter_values)),
            fields=_join_fields(fields),
            nextPageToken=next_page_token,
        )
        data = self.transport.request_json('GET', self._rest("leads.json"), params)
        return GetLeadsResponse(data)

    def get_leads_by_list(self, list_id: int, fields: Optional[List[str]] = None,
                          next_page_token: Optional[str] = None,
                          batch_size: Optional[int] = None,
                          extra_params: Optional[Dict] = None) -> GetLeadsResponse:
        """Get one page of leads that are members of a static list."""
        params = _params(
            extra_params,
            listId=list_id,
            fields=_join_fields(fields),
            nextPageToken=next_page_token,
            batchSize=batch_size,
        )
        data = self.transport.request_json('GET', self._rest(f"list/{list_id}/leads.json"), params)
        return GetLeadsResponse(data)

    def get_all_leads_by_list(self, list_id: int,
                              fields: Optional[List[str]] = None,
                              batch_size: Optional[int] = None) -> List[Dict]:
        """Fetch every lead of a static list, following nextPageToken.

        Args:
            list_id: Static list ID
            fields: Field names to return
            batch_size: Page size (Marketo maximum is 300)

        Returns:
            List of lead dictionaries

        Raises:
            ApiError: If a page reports success=false
        """
        all_leads = []
        next_page_token = None

        while True:
            response = self.get_leads_by_list(list_id, fields, next_page_token, batch_size)

            if not response.success:
                raise ApiError(f"Fetching leads of list {list_id} failed: {response.error}",
                               errors=response.to_dict().get('errors'))

            all_leads.extend(response.leads)

            next_page_token = response.next_page_token
            if not response.leads or not next_page_token:
                break

            time.sleep(self.config.pagination_delay)

        logger.info(f"Fetched {len(all_leads)} leads from list {list_id}")
        return all_leads

    def get_lead_partitions(self, extra_params: Optional[Dict] = None) -> GetLeadPartitionsResponse:
        """Get the lead partitions of the instance."""
        data = self.transport.request_json('GET', self._rest("leads/partitions.json"),
                                           _params(extra_params))
        return GetLeadPartitionsResponse(data)

    def _create_or_update_leads(self, action: str, leads: List[Dict],
                                lookup_field: Optional[str],
                                extra_params: Optional[Dict]) -> CreateOrUpdateLeadsResponse:
        """Shared command behind the create/update lead methods.

        Args:
            action: createOnly, createOrUpdate, updateOnly or createDuplicate
            leads: Lead records (field name -> value)
            lookup_field: Field used for deduplication (API default: email)
        """
        if isinstance(leads, dict):
            leads = [leads]
        if not leads:
            raise ValidationError("At least one lead is required")

        params = _params(extra_params, input=list(leads), action=action, lookupField=lookup_field)
        data = self.transport.request_json('POST', self._rest("leads.json"), params)
        return CreateOrUpdateLeadsResponse(data)

    def create_leads(self, leads: List[Dict], lookup_field: Optional[str] = None,
                     extra_params: Optional[Dict] = None) -> CreateOrUpdateLeadsResponse:
        """Create the given leads; existing leads are skipped."""
        return self._create_or_update_leads('createOnly', leads, lookup_field, extra_params)

    def create_or_update_leads(self, leads: List[Dict], lookup_field: Optional[str] = None,
                               extra_params: Optional[Dict] = None) -> CreateOrUpdateLeadsResponse:
        """Update the given leads, or create them if they do not exist."""
        return self._create_or_update_leads('createOrUpdate', leads, lookup_field, extra_params)

    def update_leads(self, leads: List[Dict], lookup_field: Optional[str] = None,
                     extra_params: Optional[Dict] = None) -> CreateOrUpdateLeadsResponse:
        """Update the given leads; unknown leads are skipped."""
        return self._create_or_update_leads('updateOnly', leads, lookup_field, extra_params)

    def create_duplicate_leads(self, leads: List[Dict], lookup_field: Optional[str] = None,
                               extra_params: Optional[Dict] = None) -> CreateOrUpdateLeadsResponse:
        """Create the given leads even if matching leads already exist."""
        return self._create_or_update_leads('createDuplicate', leads, lookup_field, extra_params)

    def delete_lead(self, leads: IdOrIds,
                    extra_params: Optional[Dict] = None) -> DeleteLeadResponse:
        """Delete one or more leads.

        Args:
            leads: A single lead ID or a list of lead IDs
        """
        params = _params(extra_params, id=_require_ids(leads, 'leads'))
        data = self.transport.request_json('DELETE', self._rest("leads.json"), params)
        return DeleteLeadResponse(data)

    def associate_lead(self, lead_id: int, cookie: Optional[str] = None,
                       extra_params: Optional[Dict] = None) -> AssociateLeadResponse:
        """Associate a known lead with a Munchkin tracking cookie."""
        params = _params(extra_params, id=lead_id, cookie=cookie)
        data = self.transport.request_json('POST', self._rest(f"leads/{lead_id}/associate.json"), params)
        return AssociateLeadResponse(data)

    def get_paging_token(self, since_datetime: Union[datetime, str],
                         extra_params: Optional[Dict] = None) -> GetPagingTokenResponse:
        """Get the paging token required by the activity and lead change endpoints.

        Args:
            since_datetime: Start of the window, as datetime or ISO-8601 string
        """
        if isinstance(since_datetime, datetime):
            since_datetime = format_datetime(since_datetime)
        if not since_datetime:
            raise ValidationError("since_datetime is required")

        params = _params(extra_params, sinceDatetime=since_datetime)
        data = self.transport.request_json('GET', self._rest("activities/pagingtoken.json"), params)
        return GetPagingTokenResponse(data)

    def get_lead_changes(self, next_page_token: str, fields: Union[str, List[str]],
                         extra_params: Optional[Dict] = None) -> GetLeadChangesResponse:
        """Get data value changes on leads since the paging token.

        Args:
            next_page_token: Token from get_paging_token() or a previous page
            fields: One field name or a list of field names to watch
        """
        fields_param = _join_fields(_as_list(fields))
        if not next_page_token:
            raise ValidationError("next_page_token is required")
        if not fields_param:
            raise ValidationError("At least one field is required")

        params = _params(extra_params, nextPageToken=next_page_token, fields=fields_param)
        data = self.transport.request_json('GET', self._rest("activities/leadchanges.json"), params)
        return GetLeadChangesResponse(data)

    # =========================================================================
    # List Operations
    # =========================================================================

    def get_lists(self, ids: Optional[IdOrIds] = None,
                  names: Optional[List[str]] = None,
                  next_page_token: Optional[str] = None,
                  batch_size: Optional[int] = None,
                  extra_params: Optional[Dict] = None) -> GetListsResponse:
        """Get static lists, optionally filtered by IDs or names."""
        params = _params(
            extra_params,
            id=_as_list(ids),
            name=_as_list(names),
            nextPageToken=next_page_token,
            batchSize=batch_size,
        )
        data = self.transport.request_json('GET', self._rest("lists.json"), params)
        return GetListsResponse(data)

    def get_list(self, list_id: int, extra_params: Optional[Dict] = None) -> GetListResponse:
        """Get a static list by ID."""
        params = _params(extra_params, id=list_id)
        data = self.transport.request_json('GET', self._rest(f"lists/{list_id}.json"), params)
        return GetListResponse(data)

    def add_leads_to_list(self, list_id: int, leads: IdOrIds,
                          extra_params: Optional[Dict] = None) -> AddOrRemoveLeadsToListResponse:
        """Add one or more leads to a static list.

        Args:
            list_id: Static list ID
            leads: A single lead ID or a list of lead IDs (max 300)
        """
        ids = _require_ids(leads, 'leads')
        params = _params(extra_params, input=[{'id': lead_id} for lead_id in ids])
        data = self.transport.request_json('POST', self._rest(f"lists/{list_id}/leads.json"), params)
        return AddOrRemoveLeadsToListResponse(data)

    def remove_leads_from_list(self, list_id: int, leads: IdOrIds,
                               extra_params: Optional[Dict] = None) -> AddOrRemoveLeadsToListResponse:
        """Remove one or more leads from a static list."""
        params = _params(extra_params, id=_require_ids(leads, 'leads'))
        data = self.transport.request_json('DELETE', self._rest(f"lists/{list_id}/leads.json"), params)
        return AddOrRemoveLeadsToListResponse(data)

    def is_member_of_list(self, list_id: int, leads: IdOrIds,
                          extra_params: Optional[Dict] = None) -> IsMemberOfListResponse:
        """Check whether one or more leads belong to a static list."""
        params = _params(extra_params, id=_require_ids(leads, 'leads'))
        data = self.transport.request_json(
            'GET', self._rest(f"lists/{list_id}/leads/ismember.json"), params
        )
        return IsMemberOfListResponse(data)

    # =========================================================================
    # Campaign Operations
    # =========================================================================

    def get_campaign(self, campaign_id: int,
                     extra_params: Optional[Dict] = None) -> GetCampaignResponse:
        """Get a smart campaign by ID."""
        params = _params(extra_params, id=campaign_id)
        data = self.transport.request_json('GET', self._rest(f"campaigns/{campaign_id}.json"), params)
        return GetCampaignResponse(data)

    def get_campaigns(self, ids: Optional[IdOrIds] = None,
                      extra_params: Optional[Dict] = None) -> GetCampaignsResponse:
        """Get smart campaigns, optionally filtered by one or more IDs."""
        params = _params(extra_params, id=_as_list(ids))
        data = self.transport.request_json('GET', self._rest("campaigns.json"), params)
        return GetCampaignsResponse(data)

    def request_campaign(self, campaign_id: int, leads: IdOrIds,
                         tokens: Optional[Any] = None,
                         extra_params: Optional[Dict] = None) -> RequestCampaignResponse:
        """Trigger a campaign for one or more leads.

        Args:
            campaign_id: Smart campaign ID (must have a 'Campaign is Requested' trigger)
            leads: A single lead ID or a list of lead IDs
            tokens: My token overrides, e.g. [{'name': '{{my.Offer}}', 'value': '10%'}]

        Example:
            client.request_campaign(1029, [318581, 318582])
        """
        campaign_input: Dict[str, Any] = {
            'leads': [{'id': lead_id} for lead_id in _require_ids(leads, 'leads')]
        }
        if tokens:
            campaign_input['tokens'] = tokens

        params = _params(extra_params, id=campaign_id, input=campaign_input)
        data = self.transport.request_json(
            'POST', self._rest(f"campaigns/{campaign_id}/trigger.json"), params
        )
        return RequestCampaignResponse(data)

    def schedule_campaign(self, campaign_id: int, run_at: Optional[datetime] = None,
                          tokens: Optional[Any] = None,
                          extra_params: Optional[Dict] = None) -> ScheduleCampaignResponse:
        """Schedule a batch campaign.

        Args:
            campaign_id: Smart campaign ID
            run_at: When to run; Marketo runs the campaign in 5 minutes if omitted
            tokens: My token overrides

        Raises:
            ValidationError: If run_at is not a datetime
        """
        campaign_input: Dict[str, Any] = {}

        if run_at is not None:
            if not isinstance(run_at, datetime):
                raise ValidationError(f"run_at must be a datetime, got {type(run_at).__name__}")
            campaign_input['runAt'] = format_datetime(run_at)

        if tokens:
            campaign_input['tokens'] = tokens

        params = _params(extra_params, id=campaign_id, input=campaign_input)
        data = self.transport.request_json(
            'POST', self._rest(f"campaigns/{campaign_id}/schedule.json"), params
        )
        return ScheduleCampaignResponse(data)

    # =========================================================================
    # Email Asset Operations
    # =========================================================================

    def update_email_content(self, email_id: int, content: Optional[Dict] = None) -> EmailResponse:
        """Update the content fields of an email (subject, fromName, ...)."""
        params = _params(content, id=email_id)
        data = self.transport.request_json('POST', self._asset(f"email/{email_id}/content.json"), params)
        return EmailResponse(data)

    def update_email_content_in_editable_section(
            self, email_id: int, html_id: str,
            content: Optional[Dict] = None) -> UpdateEmailContentInEditableSectionResponse:
        """Update one editable section of an email.

        Args:
            email_id: Email asset ID
            html_id: htmlId of the editable section
            content: Section fields, e.g. {'type': 'Text', 'value': '<p>Hi</p>'}
        """
        if not html_id:
            raise ValidationError("html_id is required")

        params = _params(content, id=email_id, htmlId=html_id)
        data = self.transport.request_json(
            'POST', self._asset(f"email/{email_id}/content/{html_id}.json"), params
        )
        return UpdateEmailContentInEditableSectionResponse(data)

    def approve_email(self, email_id: int,
                      extra_params: Optional[Dict] = None) -> ApproveEmailResponse:
        """Approve the current draft of an email."""
        params = _params(extra_params, id=email_id)
        data = self.transport.request_json(
            'POST', self._asset(f"email/{email_id}/approveDraft.json"), params
        )
        return ApproveEmailResponse(data)

    # =========================================================================
    # Bulk Import Operations
    # =========================================================================

    def import_leads_csv(self, file_path: str, file_format: Optional[str] = None,
                         lookup_field: Optional[str] = None,
                         list_id: Optional[int] = None,
                         partition_name: Optional[str] = None,
                         extra_params: Optional[Dict] = None) -> BulkImportResponse:
        """Import leads from a delimited file as an asynchronous batch.

        Args:
            file_path: Path to the file to upload
            file_format: csv, tsv or ssv (default: csv)
            lookup_field: Field used for deduplication
            list_id: Static list to add imported leads to
            partition_name: Lead partition to import into

        Returns:
            BulkImportResponse; ``.batch_id`` identifies the import job

        Raises:
            ValidationError: If the file cannot be read
        """
        if not file_path or not os.path.isfile(file_path) or not os.access(file_path, os.R_OK):
            raise ValidationError(f"Cannot read file: {file_path}")

        params = _params(
            extra_params,
            format=file_format or 'csv',
            lookupField=lookup_field,
            listId=list_id,
            partitionName=partition_name,
        )

        with open(file_path, 'rb') as fh:
            files = {'file': (os.path.basename(file_path), fh, 'text/plain')}
            data = self.transport.request_json('POST', self._bulk("leads.json"), params, files=files)

        response = BulkImportResponse(data)
        logger.info(f"Submitted lead import {os.path.basename(file_path)}: batch {response.batch_id}")
        return response

    def get_bulk_upload_status(self, batch_id: int) -> BulkImportResponse:
        """Get the status of a lead import batch."""
        _validate_batch_id(batch_id, 'get_bulk_upload_status')
        data = self.transport.request_json('GET', self._bulk(f"leads/batch/{batch_id}.json"))
        return BulkImportResponse(data)

    def get_bulk_upload_failures(self, batch_id: int) -> BulkImportFileResponse:
        """Download the failure file of a lead import batch.

        Raises:
            ApiError: Marketo answered with an error envelope instead of a file
        """
        _validate_batch_id(batch_id, 'get_bulk_upload_failures')
        content = self.transport.request_text('GET', self._bulk(f"leads/batch/{batch_id}/failures.json"))
        return BulkImportFileResponse(batch_id, content)

    def get_bulk_upload_warnings(self, batch_id: int) -> BulkImportFileResponse:
        """Download the warning file of a lead import batch."""
        _validate_batch_id(batch_id, 'get_bulk_upload_warnings')
        content = self.transport.request_text('GET', self._bulk(f"leads/batch/{batch_id}/warnings.json"))
        return BulkImportFileResponse(batch_id, content)


# =============================================================================
# Parameter helpers
# =============================================================================

def _params(extra: Optional[Dict] = None, **named) -> Dict[str, Any]:
    """Merge named parameters over pass-through ones, dropping absent values."""
    params = dict(extra or {})
    for key, value in named.items():
        if value is None:
            continue
        if isinstance(value, (str, list, tuple, dict)) and not value:
            continue
        params[key] = value
    return params


def _as_list(value) -> Optional[List]:
    """Normalize a scalar or collection to a list (None stays None)."""
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _require_ids(value, name: str) -> List:
    ids = _as_list(value)
    if not ids:
        raise ValidationError(f"At least one ID is required for {name}")
    return ids


def _join_fields(fields: Optional[List[str]]) -> Optional[str]:
    """Comma-join field names; empty or missing lists yield None."""
    if not fields:
        return None
    if isinstance(fields, str):
        return fields
    return ','.join(str(f) for f in fields)


def _validate_batch_id(batch_id, method: str):
    if isinstance(batch_id, bool) or not isinstance(batch_id, int) or batch_id <= 0:
        raise ValidationError(f"Invalid batch_id provided in {method}: {batch_id!r}")


def format_datetime(value: datetime) -> str:
    """Format a datetime as ISO-8601 with UTC offset (naive values are taken as local time)."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.isoformat(timespec='seconds')
