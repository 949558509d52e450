"""Shared pieces of the upvote status worker: settings, logging, models and the BuyUpvotes client."""
