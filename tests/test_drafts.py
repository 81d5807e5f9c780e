from conftest import USER

DRAFTS = "/api/v1/drafts"


def initial(client, **params):
    response = client.get(f"{DRAFTS}/initial", params=params)
    assert response.status_code == 200, response.text
    return response.json()


def transition(client, draft, action):
    response = client.post(f"{DRAFTS}/transition", json={"draft": draft, "action": action})
    assert response.status_code == 200, response.text
    return response.json()


def test_initial_draft(client):
    """Test fetching the initial draft."""
    draft = initial(client)
    assert draft["regionID"] == "US"
    assert draft["subregionID"] == "_self"
    assert draft["baselineDate"] == "2020-03-01"
    periods = draft["interventionPeriods"]
    assert [p["startDate"] for p in periods] == ["2020-03-01", "2020-03-16"]
    assert periods[1]["isAutoGenerated"] is True


def test_initial_draft_for_region(client):
    """Test fetching the initial draft for a region."""
    draft = initial(client, regionID="GB")
    assert draft["regionID"] == "GB"
    assert draft["interventionPeriods"][-1]["startDate"] == "2020-03-23"


def test_initial_draft_unknown_region(client):
    """Test initializing an unknown region raises KeyError."""
    response = client.get(f"{DRAFTS}/initial", params={"regionID": "ZZ"})
    assert response.status_code == 404


def test_transition_set_subregion(client):
    """Test a subregion transition over HTTP."""
    draft = transition(client, initial(client), {"type": "SET_SUBREGION", "subregionID": "US-WA"})
    assert draft["subregionID"] == "US-WA"
    assert len(draft["interventionPeriods"]) == 3


def test_rejected_transition_returns_draft_unchanged(client):
    """Test a rejected action returns the draft unchanged."""
    draft = initial(client)
    after = transition(client, draft, {"type": "REMOVE_PERIOD", "index": 5})
    assert after == draft
    after = transition(client, draft, {"type": "SET_R0", "r0": 42})
    assert after == draft


def test_blank_input_clears_value(client):
    """Test blank input clears a value."""
    draft = transition(client, initial(client), {"type": "SET_R0", "r0": 3})
    assert draft["r0"] == 3
    draft = transition(client, draft, {"type": "SET_R0", "r0": ""})
    assert draft["r0"] is None


def test_unknown_action_type_is_invalid(client):
    """Test an unknown action type is rejected."""
    response = client.post(
        f"{DRAFTS}/transition", json={"draft": initial(client), "action": {"type": "RESET"}}
    )
    assert response.status_code == 422


def test_new_policy_period(client):
    """Test the period added for policy changes."""
    response = client.post(f"{DRAFTS}/new-period", json={"draft": initial(client)})
    assert response.status_code == 200
    period = response.json()
    assert period["startDate"] == "2020-03-17"
    assert period["reductionPopulationContact"] is None
    assert period["isAutoGenerated"] is False


def test_new_end_period(client):
    """Test the period added for the interventions end date."""
    response = client.post(
        f"{DRAFTS}/new-period", params={"kind": "end"}, json={"draft": initial(client)}
    )
    assert response.status_code == 200
    assert response.json()["reductionPopulationContact"] == 0


def test_form_flow_produces_valid_submission(client, dispatcher):
    """Test a full form flow produces a submittable body."""
    draft = initial(client)
    draft = transition(client, draft, {"type": "SET_SUBREGION", "subregionID": "US-CA"})
    draft = transition(client, draft, {"type": "SET_LABEL", "label": "Reopen schools"})
    period = client.post(f"{DRAFTS}/new-period", json={"draft": draft}).json()
    draft = transition(client, draft, {"type": "ADD_PERIOD", "period": period})
    index = len(draft["interventionPeriods"]) - 1
    draft = transition(
        client,
        draft,
        {"type": "UPDATE_PERIOD", "index": index, "reductionPopulationContact": 20},
    )

    response = client.post(f"{DRAFTS}/config", json={"draft": draft})
    assert response.status_code == 200
    result = response.json()
    assert result["valid"] is True
    assert result["errors"] == []

    response = client.post("/api/v1/simulations", json=result["body"], headers=USER)
    assert response.status_code == 200
    assert len(dispatcher.jobs) == 1


def test_config_reports_missing_reduction(client):
    """Test the config endpoint reports a missing reduction."""
    draft = transition(client, initial(client), {"type": "SET_LABEL", "label": "Half done"})
    period = client.post(f"{DRAFTS}/new-period", json={"draft": draft}).json()
    draft = transition(client, draft, {"type": "ADD_PERIOD", "period": period})

    result = client.post(f"{DRAFTS}/config", json={"draft": draft}).json()
    assert result["valid"] is False
    assert [e["path"] for e in result["errors"]] == [
        "interventionPeriods[2].reductionPopulationContact"
    ]


def test_misordered_draft_is_rejected(client):
    """Test a draft whose periods are out of order is not accepted."""
    draft = initial(client)
    first, second = draft["interventionPeriods"]
    draft["interventionPeriods"] = [first, {**second, "startDate": "2020-03-01"}]
    response = client.post(
        f"{DRAFTS}/transition", json={"draft": draft, "action": {"type": "SET_LABEL", "label": "x"}}
    )
    assert response.status_code == 422
    assert client.post(f"{DRAFTS}/config", json={"draft": draft}).status_code == 422


def test_draft_not_starting_on_baseline_is_rejected(client):
    """Test a draft whose first period does not start on the baseline date is not accepted."""
    draft = initial(client)
    draft["baselineDate"] = "2020-02-01"
    response = client.post(f"{DRAFTS}/new-period", json={"draft": draft})
    assert response.status_code == 422


def test_draft_with_out_of_range_reduction_is_rejected(client):
    """Test a draft carrying a contact reduction above 100 is not accepted."""
    draft = initial(client)
    draft["interventionPeriods"][1]["reductionPopulationContact"] = 500
    response = client.post(f"{DRAFTS}/config", json={"draft": draft})
    assert response.status_code == 422
