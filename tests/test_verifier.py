"""Tests for the verifier flow."""

import asyncio
import json
import time

import pytest

from neuralhash.disclosure import DisclosureAllowList
from neuralhash.errors import FetchFailed, LedgerError, RevokedCredential
from neuralhash.hashing import credential_fingerprint
from neuralhash.integrity import IntegrityStatus
from neuralhash.ledger import MemoryCredentialLedger, MemoryTrustRegistry, TrustRegistry
from neuralhash.verifier import CredentialVerifier

ISSUER = "0x1111111111111111111111111111111111111111"
ALICE = "0xa11ce00000000000000000000000000000000a11"

BOB_PAYLOAD = {"name": "Bob", "type": "PAN", "year": "2020", "documentType": "PAN"}


class FailingTrustRegistry(TrustRegistry):
    def is_trusted(self, issuer):
        raise LedgerError("rpc down")


class SlowLedger(MemoryCredentialLedger):
    """Ledger whose reads block like a slow JSON-RPC node."""

    def get_user_credentials(self, user):
        time.sleep(0.3)
        return super().get_user_credentials(user)


class SlowTrustRegistry(MemoryTrustRegistry):
    def is_trusted(self, issuer):
        time.sleep(0.3)
        return super().is_trusted(issuer)


async def _issue(store, ledger, payload, owner=ALICE):
    cid = await store.pin_json(payload)
    credential_hash = credential_fingerprint(payload)
    ledger.issue_credential(ISSUER, owner, credential_hash, cid)
    return ledger.find_credential(owner, credential_hash)


class TestVerify:
    @pytest.mark.asyncio
    async def test_load(self, store, ledger, alice_payload):
        await _issue(store, ledger, alice_payload)
        view = CredentialVerifier(ledger, store).load(ALICE)
        assert view.address == ALICE
        assert len(view.records) == 1
        assert view.stats == {"total": 1, "active": 1, "revoked": 0}
        assert view.reports == {}

    @pytest.mark.asyncio
    async def test_verify_authentic_with_trusted_issuer(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        verifier = CredentialVerifier(ledger, store, MemoryTrustRegistry([ISSUER]))
        report = await verifier.verify(record)
        assert report.status is IntegrityStatus.AUTHENTIC
        assert report.issuer_trusted is True
        assert report.message == "✅ Credential Verified (Authentic)"
        assert report.to_dict()["issuer"] == ISSUER

    @pytest.mark.asyncio
    async def test_untrusted_issuer_still_authentic(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        report = await CredentialVerifier(ledger, store, MemoryTrustRegistry()).verify(record)
        assert report.status is IntegrityStatus.AUTHENTIC
        assert report.issuer_trusted is False

    @pytest.mark.asyncio
    async def test_no_registry_means_unknown_trust(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        assert (await CredentialVerifier(ledger, store).verify(record)).issuer_trusted is None

    @pytest.mark.asyncio
    async def test_registry_failure_is_not_fatal(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        report = await CredentialVerifier(ledger, store, FailingTrustRegistry()).verify(record)
        assert report.integrity.ok
        assert report.issuer_trusted is None

    @pytest.mark.asyncio
    async def test_tampered_skips_trust_lookup(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        store.overwrite(record.ipfs_cid, json.dumps({**alice_payload, "year": "1999"}).encode())
        report = await CredentialVerifier(ledger, store, MemoryTrustRegistry([ISSUER])).verify(record)
        assert report.status is IntegrityStatus.TAMPERED
        assert report.issuer_trusted is None
        assert report.message == "❌ Credential Tampered"

    @pytest.mark.asyncio
    async def test_verify_address_all(self, store, ledger, alice_payload):
        await _issue(store, ledger, alice_payload)
        revoked = await _issue(store, ledger, BOB_PAYLOAD)
        ledger.revoke_credential(ISSUER, ALICE, revoked.credential_hash)

        view = await CredentialVerifier(ledger, store).verify_address(ALICE)
        statuses = {h: r.status for h, r in view.reports.items()}
        assert statuses == {
            credential_fingerprint(alice_payload): IntegrityStatus.AUTHENTIC,
            credential_fingerprint(BOB_PAYLOAD): IntegrityStatus.REVOKED,
        }

    @pytest.mark.asyncio
    async def test_verify_address_single_hash(self, store, ledger, alice_payload):
        await _issue(store, ledger, alice_payload)
        await _issue(store, ledger, BOB_PAYLOAD)
        target = credential_fingerprint(BOB_PAYLOAD)

        view = await CredentialVerifier(ledger, store).verify_address(ALICE, target.upper()[2:])
        assert list(view.reports) == [target]

    @pytest.mark.asyncio
    async def test_verify_address_unknown_hash(self, store, ledger, alice_payload):
        await _issue(store, ledger, alice_payload)
        view = await CredentialVerifier(ledger, store).verify_address(ALICE, "0x" + "ab" * 32)
        assert view.reports == {}
        assert len(view.records) == 1


class TestDisclose:
    @pytest.mark.asyncio
    async def test_public_view(self, store, ledger):
        payload = {**BOB_PAYLOAD, "fields": {"pan_number": "ABCDE1234F"}}
        record = await _issue(store, ledger, payload)
        disclosed = await CredentialVerifier(ledger, store).disclose(record)
        assert disclosed == {"documentType": "PAN", "type": "PAN", "year": "2020"}

    @pytest.mark.asyncio
    async def test_custom_allow_list(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        allow = DisclosureAllowList.from_claim_request(["name"])
        assert await CredentialVerifier(ledger, store).disclose(record, allow) == {"name": "Alice"}

    @pytest.mark.asyncio
    async def test_revoked_refused_without_fetch(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        ledger.revoke_credential(ISSUER, ALICE, record.credential_hash)
        [revoked] = ledger.get_user_credentials(ALICE)
        with pytest.raises(RevokedCredential):
            await CredentialVerifier(ledger, store).disclose(revoked)
        assert store.fetch_count == 0

    @pytest.mark.asyncio
    async def test_fetch_failure(self, store, ledger, alice_payload):
        ledger.issue_credential(ISSUER, ALICE, credential_fingerprint(alice_payload), "mem-gone")
        [record] = ledger.get_user_credentials(ALICE)
        with pytest.raises(FetchFailed):
            await CredentialVerifier(ledger, store).disclose(record)

    @pytest.mark.asyncio
    async def test_disclose_in_view(self, store, ledger, alice_payload):
        record = await _issue(store, ledger, alice_payload)
        verifier = CredentialVerifier(ledger, store)
        view = await verifier.disclose_in_view(verifier.load(ALICE), record)
        assert view.disclosed == {"type": "Passport", "year": "2025"}


class TestEventLoop:
    @pytest.mark.asyncio
    async def test_slow_rpc_does_not_stall_other_requests(self, store, alice_payload):
        ledger = SlowLedger()
        cid = await store.pin_json(alice_payload)
        ledger.issue_credential(ISSUER, ALICE, credential_fingerprint(alice_payload), cid)
        verifier = CredentialVerifier(ledger, store, SlowTrustRegistry([ISSUER]))

        ticks = 0

        async def other_request():
            nonlocal ticks
            while True:
                await asyncio.sleep(0.01)
                ticks += 1

        task = asyncio.create_task(other_request())
        try:
            view = await verifier.verify_address(ALICE)
        finally:
            task.cancel()

        [report] = view.reports.values()
        assert report.status is IntegrityStatus.AUTHENTIC
        assert report.issuer_trusted is True
        # ~0.6s of blocking RPC; the loop kept running throughout
        assert ticks >= 20
