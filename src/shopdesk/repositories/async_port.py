from __future__ import annotations

import asyncio

from shopdesk.domain.models import Customer, Product, Transaction, TransactionFilter, TransactionRequest
from shopdesk.repositories.contracts import DataPort


class AsyncDataPort:
    """Runs a blocking data port in a worker thread.

    Only the I/O leaves the loop thread; results are resumed on the loop, so
    every state change still happens on a single thread.
    """

    def __init__(self, port: DataPort):
        self.port = port

    async def list_transactions(self, flt: TransactionFilter) -> list[Transaction]:
        return await asyncio.to_thread(self.port.list_transactions, flt)

    async def create_transaction(self, request: TransactionRequest) -> Transaction:
        return await asyncio.to_thread(self.port.create_transaction, request)

    async def list_products(self, active_only: bool = True) -> list[Product]:
        return await asyncio.to_thread(self.port.list_products, active_only)

    async def list_customers(self) -> list[Customer]:
        return await asyncio.to_thread(self.port.list_customers)
