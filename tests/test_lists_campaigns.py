"""
Tests for MarketoClient static list and smart campaign operations.
"""

import re
from datetime import datetime, timedelta, timezone

import pytest
import responses

from marketo_client import ValidationError
from tests.helpers import REST_URL, envelope, json_body, path_of, query_of


# =============================================================================
# Lists
# =============================================================================


class TestGetLists:
    @responses.activate
    def test_scalar_id_matches_single_item_list(self, client):
        responses.add(responses.GET, f"{REST_URL}/lists.json", json=envelope([{"id": 5, "name": "Webinar"}]))

        response = client.get_lists(5)
        client.get_lists([5])

        assert query_of(responses.calls[0]) == query_of(responses.calls[1]) == {"id": "5"}
        assert response.lists[0]["name"] == "Webinar"

    @responses.activate
    def test_no_filter_sends_no_id(self, client):
        responses.add(responses.GET, f"{REST_URL}/lists.json", json=envelope())

        client.get_lists()

        assert query_of(responses.calls[0]) == {}

    @responses.activate
    def test_names_and_paging(self, client):
        responses.add(responses.GET, f"{REST_URL}/lists.json", json=envelope())

        client.get_lists(names=["Webinar", "Newsletter"], next_page_token="NEXT", batch_size=20)

        assert query_of(responses.calls[0]) == {
            "name": "Webinar,Newsletter",
            "nextPageToken": "NEXT",
            "batchSize": "20",
        }

    @responses.activate
    def test_get_list(self, client):
        responses.add(responses.GET, f"{REST_URL}/lists/7.json", json=envelope([{"id": 7, "name": "VIP"}]))

        response = client.get_list(7)

        assert query_of(responses.calls[0]) == {"id": "7"}
        assert response.lead_list["name"] == "VIP"


class TestListMembership:
    @responses.activate
    def test_add_scalar_matches_single_item_list(self, client):
        responses.add(responses.POST, f"{REST_URL}/lists/7/leads.json", json=envelope([{"id": 318581, "status": "added"}]))

        response = client.add_leads_to_list(7, 318581)
        client.add_leads_to_list(7, [318581])

        assert json_body(responses.calls[0]) == json_body(responses.calls[1]) == {"input": [{"id": 318581}]}
        assert response.get_status(318581) == "added"

    @responses.activate
    def test_remove_leads(self, client):
        responses.add(responses.DELETE, f"{REST_URL}/lists/7/leads.json", json=envelope([{"id": 1, "status": "removed"}]))

        response = client.remove_leads_from_list(7, [1, 2])

        assert responses.calls[0].request.method == "DELETE"
        assert query_of(responses.calls[0]) == {"id": "1,2"}
        assert response.get_status(1) == "removed"

    @responses.activate
    def test_is_member_of_list(self, client):
        responses.add(
            responses.GET,
            f"{REST_URL}/lists/7/leads/ismember.json",
            json=envelope([{"id": 1, "status": "memberof"}, {"id": 2, "status": "notmemberof"}]),
        )

        response = client.is_member_of_list(7, [1, 2])

        assert query_of(responses.calls[0]) == {"id": "1,2"}
        assert response.is_member_of_list(1) is True
        assert response.is_member_of_list(2) is False
        assert response.is_member_of_list(3) is None

    @pytest.mark.parametrize("method", ["add_leads_to_list", "remove_leads_from_list", "is_member_of_list"])
    @responses.activate
    def test_empty_leads_rejected(self, client, method):
        with pytest.raises(ValidationError):
            getattr(client, method)(7, [])

        assert len(responses.calls) == 0


# =============================================================================
# Campaigns
# =============================================================================


class TestGetCampaigns:
    @responses.activate
    def test_get_campaign(self, client):
        responses.add(responses.GET, f"{REST_URL}/campaigns/1029.json", json=envelope([{"id": 1029, "active": True}]))

        response = client.get_campaign(1029)

        assert query_of(responses.calls[0]) == {"id": "1029"}
        assert response.campaign["active"] is True

    @responses.activate
    def test_get_campaigns_by_ids(self, client):
        responses.add(responses.GET, f"{REST_URL}/campaigns.json", json=envelope([{"id": 1}, {"id": 2}]))

        response = client.get_campaigns([1, 2])

        assert query_of(responses.calls[0]) == {"id": "1,2"}
        assert len(response.campaigns) == 2

    @responses.activate
    def test_get_campaigns_without_filter(self, client):
        responses.add(responses.GET, f"{REST_URL}/campaigns.json", json=envelope())

        client.get_campaigns()

        assert query_of(responses.calls[0]) == {}


class TestRequestCampaign:
    @responses.activate
    def test_single_lead_is_wrapped(self, client):
        responses.add(responses.POST, f"{REST_URL}/campaigns/1029/trigger.json", json=envelope([{"id": 1029}]))

        client.request_campaign(1029, 318581)

        assert path_of(responses.calls[0]) == "/rest/v1/campaigns/1029/trigger.json"
        assert json_body(responses.calls[0]) == {"id": 1029, "input": {"leads": [{"id": 318581}]}}

    @responses.activate
    def test_tokens_are_sent(self, client):
        responses.add(responses.POST, f"{REST_URL}/campaigns/1029/trigger.json", json=envelope())
        tokens = [{"name": "{{my.Offer}}", "value": "20% off"}]

        client.request_campaign(1029, [1, 2], tokens)

        assert json_body(responses.calls[0])["input"] == {
            "leads": [{"id": 1}, {"id": 2}],
            "tokens": tokens,
        }

    @responses.activate
    def test_requires_leads(self, client):
        with pytest.raises(ValidationError):
            client.request_campaign(1029, [])

        assert len(responses.calls) == 0


class TestScheduleCampaign:
    @responses.activate
    def test_without_run_at_omits_input(self, client):
        responses.add(responses.POST, f"{REST_URL}/campaigns/1029/schedule.json", json=envelope([{"id": 1029}]))

        response = client.schedule_campaign(1029)

        assert json_body(responses.calls[0]) == {"id": 1029}
        assert response.success

    @responses.activate
    def test_run_at_iso_8601_with_offset(self, client):
        responses.add(responses.POST, f"{REST_URL}/campaigns/1029/schedule.json", json=envelope())
        run_at = datetime(2024, 5, 1, 10, 30, tzinfo=timezone(timedelta(hours=2)))

        client.schedule_campaign(1029, run_at)

        assert json_body(responses.calls[0])["input"] == {"runAt": "2024-05-01T10:30:00+02:00"}

    @responses.activate
    def test_naive_run_at_gets_local_offset(self, client):
        responses.add(responses.POST, f"{REST_URL}/campaigns/1029/schedule.json", json=envelope())

        client.schedule_campaign(1029, datetime(2024, 5, 1, 10, 30))

        run_at = json_body(responses.calls[0])["input"]["runAt"]
        assert re.fullmatch(r"2024-05-01T10:30:00[+-]\d{2}:\d{2}", run_at)

    @responses.activate
    def test_tokens_without_run_at(self, client):
        responses.add(responses.POST, f"{REST_URL}/campaigns/1029/schedule.json", json=envelope())
        tokens = [{"name": "{{my.Date}}", "value": "May 1"}]

        client.schedule_campaign(1029, tokens=tokens)

        assert json_body(responses.calls[0])["input"] == {"tokens": tokens}

    @responses.activate
    def test_invalid_run_at(self, client):
        with pytest.raises(ValidationError, match="run_at"):
            client.schedule_campaign(1029, "tomorrow")

        assert len(responses.calls) == 0
