"""Tests for the holder flow: previews and claim fulfilment."""

import pytest

from neuralhash.auth_gate import DenyAllGate
from neuralhash.errors import AuthenticationDenied, LedgerError
from neuralhash.hashing import credential_fingerprint
from neuralhash.holder import UNNAMED, CredentialHolder, preview_from_payload
from neuralhash.interactions import SELECTED_CID_PREFIX, MemoryInteractionHub
from neuralhash.ledger import CredentialRecord

ISSUER = "0x1111111111111111111111111111111111111111"
ALICE = "0xa11ce00000000000000000000000000000000a11"
VERIFIER = "0x7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e7e"

PASSPORT = {
    "name": "Alice",
    "type": "Passport",
    "year": "2025",
    "documentType": "Passport",
    "documentCid": "bafydoc",
    "documentName": "passport.pdf",
    "fields": {"passport_number": "Z1234567"},
}


class SilentHub(MemoryInteractionHub):
    """Hub whose attestation call always fails."""

    def create_attestation(self, attester, target, text):
        raise LedgerError("out of gas")


async def _issue(store, ledger, payload, owner=ALICE):
    cid = await store.pin_json(payload)
    ledger.issue_credential(ISSUER, owner, credential_fingerprint(payload), cid)
    return cid


class TestPreview:
    def test_title_prefers_document_name(self):
        record = CredentialRecord("0x1", "cid", ISSUER, True)
        preview = preview_from_payload(record, PASSPORT)
        assert preview.title == "passport.pdf"
        assert preview.credential_type == "Passport"

    def test_title_falls_back_to_name_then_default(self):
        record = CredentialRecord("0x1", "cid", ISSUER, True)
        assert preview_from_payload(record, {"name": "Alice"}).title == "Alice"
        assert preview_from_payload(record, {}).title == UNNAMED
        assert preview_from_payload(record, "garbage").title == UNNAMED

    def test_type_falls_back_to_document_type(self):
        record = CredentialRecord("0x1", "cid", ISSUER, True)
        assert preview_from_payload(record, {"documentType": "PAN"}).credential_type == "PAN"

    @pytest.mark.asyncio
    async def test_preview_records(self, store, ledger, hub):
        await _issue(store, ledger, PASSPORT)
        ledger.issue_credential(ISSUER, ALICE, "0x" + "cd" * 32, "mem-gone")
        holder = CredentialHolder(hub, ledger, store)

        previews = await holder.preview(ledger.get_user_credentials(ALICE))
        assert previews[0].title == "passport.pdf"
        assert previews[0].error is None
        assert previews[1].title == UNNAMED
        assert previews[1].error
        assert previews[0].to_dict()["ipfsCID"] == previews[0].record.ipfs_cid


class TestFulfil:
    @pytest.mark.asyncio
    async def test_fulfil_notifies_requester(self, store, ledger, hub):
        cid = await _issue(store, ledger, PASSPORT)
        request_id = hub.create_claim_request(VERIFIER, ALICE, ["name", "year"], "employment check")
        holder = CredentialHolder(hub, ledger, store)

        assert [r.id for r in holder.pending_requests(ALICE)] == [request_id]
        outcome = await holder.fulfill(ALICE, request_id, cid)

        assert outcome.request.fulfilled
        assert outcome.notified
        assert outcome.disclosure == {"name": "Alice", "year": "2025"}
        [notice] = hub.get_attestations(VERIFIER)
        assert notice.text == f"{SELECTED_CID_PREFIX}{cid}"
        assert notice.selected_cid == cid
        assert holder.pending_requests(ALICE) == []

    @pytest.mark.asyncio
    async def test_default_fields_disclose_type_and_year(self, store, ledger, hub):
        cid = await _issue(store, ledger, PASSPORT)
        request_id = hub.create_claim_request(VERIFIER, ALICE, [], "KYC")
        outcome = await CredentialHolder(hub, ledger, store).fulfill(ALICE, request_id, cid)
        assert outcome.disclosure == {"type": "Passport", "year": "2025"}

    @pytest.mark.asyncio
    async def test_document_cid_field(self, store, ledger, hub):
        cid = await _issue(store, ledger, PASSPORT)
        request_id = hub.create_claim_request(VERIFIER, ALICE, ["documentCid"], "KYC")
        outcome = await CredentialHolder(hub, ledger, store).fulfill(ALICE, request_id, cid)
        assert outcome.disclosure == {"documentCid": "bafydoc"}

    @pytest.mark.asyncio
    async def test_already_fulfilled(self, store, ledger, hub):
        cid = await _issue(store, ledger, PASSPORT)
        request_id = hub.create_claim_request(VERIFIER, ALICE, [], "KYC")
        holder = CredentialHolder(hub, ledger, store)
        await holder.fulfill(ALICE, request_id, cid)
        with pytest.raises(LedgerError, match="already fulfilled"):
            await holder.fulfill(ALICE, request_id, cid)
        assert len(hub.get_attestations(VERIFIER)) == 1

    @pytest.mark.asyncio
    async def test_cid_must_be_an_active_credential(self, store, ledger, hub):
        cid = await _issue(store, ledger, PASSPORT)
        ledger.revoke_credential(ISSUER, ALICE, credential_fingerprint(PASSPORT))
        request_id = hub.create_claim_request(VERIFIER, ALICE, [], "KYC")
        with pytest.raises(LedgerError, match="active credentials"):
            await CredentialHolder(hub, ledger, store).fulfill(ALICE, request_id, cid)
        assert not hub.get_claim_request(request_id).fulfilled

    @pytest.mark.asyncio
    async def test_foreign_cid_rejected(self, store, ledger, hub):
        other_cid = await _issue(store, ledger, {"name": "Bob"}, owner=VERIFIER)
        request_id = hub.create_claim_request(VERIFIER, ALICE, [], "KYC")
        with pytest.raises(LedgerError):
            await CredentialHolder(hub, ledger, store).fulfill(ALICE, request_id, other_cid)

    @pytest.mark.asyncio
    async def test_only_subject_may_fulfil(self, store, ledger, hub):
        cid = await _issue(store, ledger, PASSPORT)
        request_id = hub.create_claim_request(VERIFIER, ALICE, [], "KYC")
        with pytest.raises(LedgerError):
            await CredentialHolder(hub, ledger, store).fulfill(VERIFIER, request_id, cid)

    @pytest.mark.asyncio
    async def test_notice_failure_is_reported_not_raised(self, store, ledger):
        hub = SilentHub()
        cid = await _issue(store, ledger, PASSPORT)
        request_id = hub.create_claim_request(VERIFIER, ALICE, [], "KYC")
        outcome = await CredentialHolder(hub, ledger, store).fulfill(ALICE, request_id, cid)
        assert outcome.request.fulfilled
        assert outcome.notified is False

    @pytest.mark.asyncio
    async def test_gate(self, store, ledger, hub):
        cid = await _issue(store, ledger, PASSPORT)
        request_id = hub.create_claim_request(VERIFIER, ALICE, [], "KYC")
        with pytest.raises(AuthenticationDenied):
            await CredentialHolder(hub, ledger, store, DenyAllGate()).fulfill(ALICE, request_id, cid)
        assert not hub.get_claim_request(request_id).fulfilled
