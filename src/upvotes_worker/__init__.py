"""Upvote order status worker: scheduled reconciliation against the BuyUpvotes API."""
