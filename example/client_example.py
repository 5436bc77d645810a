from web3 import AsyncWeb3
import httpx

from emailpay.adapters.evm import TokenReader, PermitFailure, create_gasless_permit
from emailpay.adapters.evm.constants import get_asset_config, get_chain_config

owner_pk = "0xxxx"  # Exported from the wallet provider for this call only
owner = "0xOwnerAddress"
relayer = "0xRelayerAddress"  # The server's spender wallet
rpc_url = get_chain_config().public_rpc_url


async def main():
    asset = get_asset_config()
    reader = TokenReader(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)))

    permit = await create_gasless_permit(
        owner=owner,
        spender=relayer,
        amount="10.5",
        token=asset.address,
        chain_id=get_chain_config().chain_id,
        reader=reader,
        private_key=owner_pk,
    )
    if isinstance(permit, PermitFailure):
        raise SystemExit(f"Permit failed at {permit.stage}: {permit.error}")

    async with httpx.AsyncClient(timeout=httpx.Timeout(60.0, read=300.0)) as client:
        return await client.post("http://localhost:8000/transactions", json={
            "userAddress": owner,
            "toRecipients": [{"name": "Bob", "email": "bob@example.com", "address": "0xRecipientAddress"}],
            "subject": "Lunch",
            "message": "Thanks!",
            "amount": "10.5",
            "status": "pending",
            "isGasless": True,
            "eip2612": permit.to_permit_data().to_dict(),
        })


if __name__ == "__main__":
    import asyncio
    response = asyncio.run(main())
    print("Response:", response.json())
