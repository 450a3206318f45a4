"""
Tests for CREATE2 address derivation.
"""
import pytest
from eth_abi import decode, encode
from hypothesis import assume, given, settings, strategies as st
from web3 import Web3

from accountkit_sdk.addresses import (
    AccountProxyParams,
    AddressDeriver,
    AddressKind,
    SingletonParams,
    ZodiacModuleParams,
    create2_address,
    minimal_proxy_code,
)
from accountkit_sdk.config import Deployments
from accountkit_sdk.constants import ACCOUNT_CREATION_NONCE, ZERO_ADDRESS, ZERO_HASH, owner_channel_nonce
from accountkit_sdk.exceptions import ConfigurationError, InvalidAddressError

from conftest import TEST_ACCOUNT, TEST_OWNER, TEST_PROXY_CREATION_CODE, TEST_SPENDER

address_strategy = st.binary(min_size=20, max_size=20).map(Web3.to_checksum_address)


class TestCreate2:
    """EIP-1014 reference vectors."""

    def test_zero_inputs(self):
        result = create2_address(ZERO_ADDRESS, ZERO_HASH, bytes(Web3.keccak(b"\x00")))
        assert result.lower() == "0x4d1a2e2bb4f88f0250f26ffff098b0b30b26bf38"

    def test_deadbeef(self):
        salt = (0xCAFEBABE).to_bytes(32, "big")
        result = create2_address(
            "0x00000000000000000000000000000000deadbeef",
            salt,
            bytes(Web3.keccak(bytes.fromhex("deadbeef"))),
        )
        assert result.lower() == "0x60f3f640a8508fc6a86d45df051962668e1e8ac7"

    def test_result_is_checksummed(self):
        result = create2_address(ZERO_ADDRESS, ZERO_HASH, bytes(Web3.keccak(b"\x00")))
        assert result == Web3.to_checksum_address(result)

    def test_rejects_short_salt(self):
        with pytest.raises(ValueError):
            create2_address(ZERO_ADDRESS, b"\x01", bytes(Web3.keccak(b"")))


class TestZodiacModules:

    def test_minimal_proxy_code_embeds_mastercopy(self, deployments):
        code = minimal_proxy_code(deployments.delay_mastercopy)
        assert code.hex().startswith("602d8060093d393df3363d3d373d3d3d363d73")
        assert code.hex().endswith("5af43d82803e903d91602b57fd5bf3")
        assert deployments.delay_mastercopy.lower()[2:] in code.hex()

    def test_delay_prediction_matches_manual_derivation(self, deriver, deployments):
        setup = deriver.delay_setup(TEST_ACCOUNT)
        salt = Web3.keccak(Web3.keccak(setup) + encode(["uint256"], [0]))
        expected = Web3.to_checksum_address(
            Web3.keccak(
                b"\xff"
                + bytes.fromhex(deployments.module_proxy_factory[2:])
                + salt
                + Web3.keccak(minimal_proxy_code(deployments.delay_mastercopy))
            )[12:]
        )
        assert deriver.predict_delay(TEST_ACCOUNT) == expected

    def test_delay_setup_initializer(self, deriver):
        setup = deriver.delay_setup(TEST_ACCOUNT)
        assert setup[:4] == Web3.keccak(text="setUp(bytes)")[:4]
        (initializer,) = decode(["bytes"], setup[4:])
        owner, avatar, target, cooldown, expiration = decode(
            ["address", "address", "address", "uint256", "uint256"], initializer
        )
        assert {owner, avatar, target} == {TEST_ACCOUNT.lower()}
        assert (cooldown, expiration) == (0, 0)

    def test_delay_and_roles_differ(self, deriver):
        assert deriver.predict_delay(TEST_ACCOUNT) != deriver.predict_roles(TEST_ACCOUNT)

    def test_case_of_input_does_not_matter(self, deriver):
        assert deriver.predict_delay(TEST_ACCOUNT.lower()) == deriver.predict_delay(TEST_ACCOUNT)

    def test_salt_nonce_changes_address(self, deriver, deployments):
        params = deriver.roles_params(TEST_ACCOUNT)
        other = ZodiacModuleParams(params.mastercopy, params.setup_calldata, salt_nonce=1)
        assert deriver.predict(AddressKind.ZODIAC_MODULE, params) != deriver.predict(AddressKind.ZODIAC_MODULE, other)

    @settings(max_examples=25)
    @given(data=st.data())
    def test_any_setup_byte_changes_address(self, data):
        deriver = AddressDeriver(Deployments())
        params = deriver.delay_params(TEST_ACCOUNT)
        index = data.draw(st.integers(min_value=0, max_value=len(params.setup_calldata) - 1))
        flip = data.draw(st.integers(min_value=1, max_value=255))
        setup = bytearray(params.setup_calldata)
        setup[index] ^= flip
        changed = ZodiacModuleParams(params.mastercopy, bytes(setup), params.salt_nonce)

        assert deriver.predict(AddressKind.ZODIAC_MODULE, changed) != deriver.predict_delay(TEST_ACCOUNT)

    @settings(max_examples=25)
    @given(mastercopy=address_strategy)
    def test_mastercopy_changes_address(self, mastercopy):
        deriver = AddressDeriver(Deployments())
        params = deriver.roles_params(TEST_ACCOUNT)
        assume(mastercopy != params.mastercopy)
        changed = ZodiacModuleParams(mastercopy, params.setup_calldata, params.salt_nonce)

        assert deriver.predict(AddressKind.ZODIAC_MODULE, changed) != deriver.predict_roles(TEST_ACCOUNT)

    def test_module_creation_transaction(self, deriver, deployments):
        params = deriver.delay_params(TEST_ACCOUNT)
        tx = deriver.populate_module_creation(params)
        assert tx.to == deployments.module_proxy_factory
        assert tx.value == 0
        assert tx.data[:4] == Web3.keccak(text="deployModule(address,bytes,uint256)")[:4]
        mastercopy, setup, nonce = decode(["address", "bytes", "uint256"], tx.data[4:])
        assert mastercopy == deployments.delay_mastercopy.lower()
        assert setup == params.setup_calldata
        assert nonce == 0

    @settings(max_examples=25)
    @given(account=address_strategy)
    def test_predictions_are_deterministic(self, account):
        first = AddressDeriver(Deployments())
        second = AddressDeriver(Deployments())
        assert first.predict_delay(account) == second.predict_delay(account)
        assert first.predict_roles(account) == second.predict_roles(account)
        assert first.predict_delay(account) != first.predict_roles(account)


class TestAccountProxies:

    def test_account_prediction_matches_manual_derivation(self, deriver, deployments):
        initializer = deriver.safe_initializer([TEST_OWNER], 1)
        salt = Web3.keccak(Web3.keccak(initializer) + encode(["uint256"], [ACCOUNT_CREATION_NONCE]))
        init_code = TEST_PROXY_CREATION_CODE + encode(["address"], [deployments.safe_mastercopy])
        expected = create2_address(deployments.safe_proxy_factory, bytes(salt), bytes(Web3.keccak(init_code)))

        assert deriver.predict_account(TEST_OWNER) == expected

    @settings(max_examples=25)
    @given(owner=address_strategy)
    def test_owner_changes_address(self, owner):
        deriver = AddressDeriver(Deployments(safe_proxy_creation_code=TEST_PROXY_CREATION_CODE))
        assume(owner != TEST_OWNER)
        assert deriver.predict_account(owner) != deriver.predict_account(TEST_OWNER)

    def test_threshold_changes_address(self, deriver):
        owners = [TEST_OWNER, TEST_SPENDER]
        assert deriver.predict_spender(owners, 1) != deriver.predict_spender(owners, 2)

    def test_mastercopy_changes_account_address(self, deployments):
        other = AddressDeriver(deployments.with_overrides(safe_mastercopy="0x" + "42" * 20))
        assert other.predict_account(TEST_OWNER) != AddressDeriver(deployments).predict_account(TEST_OWNER)

    def test_initializer_layout(self, deriver, deployments):
        initializer = deriver.safe_initializer([TEST_OWNER], 1)
        sig = "setup(address[],uint256,address,bytes,address,address,uint256,address)"
        assert initializer[:4] == Web3.keccak(text=sig)[:4]
        owners, threshold, to, data, fallback, token, payment, receiver = decode(
            ["address[]", "uint256", "address", "bytes", "address", "address", "uint256", "address"],
            initializer[4:],
        )
        assert owners == (TEST_OWNER.lower(),)
        assert threshold == 1
        assert data == b""
        assert fallback == deployments.fallback_handler.lower()
        assert (to, token, receiver) == (ZERO_ADDRESS,) * 3
        assert payment == 0

    def test_missing_creation_code_is_configuration_error(self):
        deriver = AddressDeriver(Deployments())
        with pytest.raises(ConfigurationError):
            deriver.predict_account(TEST_OWNER)

    def test_spender_nonce_required(self, deployments):
        deriver = AddressDeriver(deployments.with_overrides(spender_creation_nonce=None))
        with pytest.raises(ConfigurationError):
            deriver.predict_spender([TEST_SPENDER], 1)

    def test_spender_nonce_argument_wins(self, deriver):
        assert deriver.predict_spender([TEST_SPENDER], 1, creation_nonce=7) == deriver.predict_spender([TEST_SPENDER], 1)
        assert deriver.predict_spender([TEST_SPENDER], 1, creation_nonce=8) != deriver.predict_spender([TEST_SPENDER], 1)

    def test_channels_are_keyed_by_account(self, deriver):
        other = "0x" + "99" * 20
        assert deriver.predict_owner_channel(TEST_ACCOUNT, TEST_OWNER) != deriver.predict_owner_channel(other, TEST_OWNER)
        assert deriver.predict_owner_channel(TEST_ACCOUNT, TEST_OWNER) != deriver.predict_spender_channel(TEST_ACCOUNT, TEST_OWNER)

    def test_owner_channel_params(self, deriver):
        params = deriver.owner_channel_params(TEST_ACCOUNT.lower(), TEST_OWNER)
        assert params == AccountProxyParams((TEST_OWNER,), 1, owner_channel_nonce(TEST_ACCOUNT))

    def test_creation_transaction(self, deriver, deployments):
        params = deriver.account_params(TEST_OWNER)
        tx = deriver.populate_account_proxy_creation(params)
        assert tx.to == deployments.safe_proxy_factory
        assert tx.data[:4] == Web3.keccak(text="createProxyWithNonce(address,bytes,uint256)")[:4]
        mastercopy, initializer, nonce = decode(["address", "bytes", "uint256"], tx.data[4:])
        assert mastercopy == deployments.safe_mastercopy.lower()
        assert initializer == deriver.safe_initializer([TEST_OWNER], 1)
        assert nonce == ACCOUNT_CREATION_NONCE

    def test_fetch_proxy_creation_code(self, deriver, deployments):
        requests = []

        def eth_call(request):
            requests.append(request)
            return encode(["bytes"], [TEST_PROXY_CREATION_CODE])

        assert deriver.fetch_proxy_creation_code(eth_call) == TEST_PROXY_CREATION_CODE
        assert requests[0].to == deployments.safe_proxy_factory
        assert requests[0].data == Web3.keccak(text="proxyCreationCode()")[:4]


class TestSingletons:

    def test_bouncer_creation_code_arguments(self, deriver):
        params = deriver.bouncer_params(TEST_ACCOUNT)
        args = params.creation_code[-96:]
        source, target, sel = decode(["address", "address", "bytes4"], args)
        assert source == TEST_ACCOUNT.lower()
        assert Web3.to_checksum_address(target) == deriver.predict_roles(TEST_ACCOUNT)
        assert sel == Web3.keccak(text="setAllowance(bytes32,uint128,uint128,uint128,uint64,uint64)")[:4]
        assert params.salt == ZERO_HASH

    def test_bouncer_and_forwarder_differ(self, deriver):
        assert deriver.predict_bouncer(TEST_ACCOUNT) != deriver.predict_forwarder(TEST_ACCOUNT)

    def test_missing_bouncer_bytecode(self):
        with pytest.raises(ConfigurationError):
            AddressDeriver(Deployments()).predict_bouncer(TEST_ACCOUNT)

    def test_singleton_creation_transaction(self, deriver, deployments):
        params = deriver.bouncer_params(TEST_ACCOUNT)
        tx = deriver.populate_singleton_creation(params)
        assert tx.to == deployments.singleton_factory
        assert tx.data == ZERO_HASH + params.creation_code

    def test_generic_singleton(self, deriver, deployments):
        params = SingletonParams(b"\x00")
        expected = create2_address(deployments.singleton_factory, ZERO_HASH, bytes(Web3.keccak(b"\x00")))
        assert deriver.predict(AddressKind.SINGLETON, params) == expected


class TestDispatch:

    def test_mismatched_params_rejected(self, deriver):
        with pytest.raises(TypeError):
            deriver.predict(AddressKind.SINGLETON, deriver.delay_params(TEST_ACCOUNT))

    def test_invalid_address_rejected(self, deriver):
        with pytest.raises(InvalidAddressError):
            deriver.predict_delay("0x1234")

    def test_bad_checksum_rejected(self, deriver):
        mixed = "0x" + "aB" * 20
        with pytest.raises(InvalidAddressError):
            deriver.predict_delay(mixed)

    def test_single_case_flip_rejected(self, deriver):
        # checksummed form is 0xcA11bde05977b3631167028862bE2a173976CA11
        with pytest.raises(InvalidAddressError):
            deriver.predict_delay("0xca11bde05977b3631167028862bE2a173976CA11")

    @pytest.mark.parametrize("address", [
        "0xcA11bde05977b3631167028862bE2a173976CA11",
        "0xca11bde05977b3631167028862be2a173976ca11",
        "0xCA11BDE05977B3631167028862BE2A173976CA11",
    ])
    def test_valid_forms_accepted(self, deriver, address):
        assert deriver.predict_delay(address) == deriver.predict_delay("0xcA11bde05977b3631167028862bE2a173976CA11")

    def test_topology(self, deriver):
        topology = deriver.topology(TEST_ACCOUNT, owner=TEST_OWNER)
        assert topology.delay == deriver.predict_delay(TEST_ACCOUNT)
        assert topology.roles == deriver.predict_roles(TEST_ACCOUNT)
        assert topology.bouncer == deriver.predict_bouncer(TEST_ACCOUNT)
        assert topology.forwarder == deriver.predict_forwarder(TEST_ACCOUNT)
        assert topology.owner_channel == deriver.predict_owner_channel(TEST_ACCOUNT, TEST_OWNER)
        assert topology.spender_channel is None
