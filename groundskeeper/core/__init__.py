"""Groundskeeper core — archive codec, snapshot store, matcher, differ,
bounded executor and the reconciliation engine that composes them."""
