from emailpay.config import Settings, configure_logging
from emailpay.servers import EmailPayServer
from emailpay.engine.events import TransactionCompletedEvent, PermitExecutedEvent


settings = Settings.from_env()
configure_logging(settings.log_level)

# Routes are added at /transactions
app = EmailPayServer(
    settings=settings,
    title="EmailPay API",
)


# Optional: Add event hooks for custom logic
@app.hook(PermitExecutedEvent)
async def on_permit_executed(event, deps):
    """Log when a permit lands on-chain."""
    print(f"Permit executed for {event.transaction_id}: {event.permit_tx_hash}")

@app.hook(TransactionCompletedEvent)
async def on_completed(event, deps):
    """Log when a transfer completes."""
    print(f"Transfer completed: {event.transaction.tx_hash}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="localhost", port=8000, log_level="info")
