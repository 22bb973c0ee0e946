"""LAN discovery and two-bot session orchestration for snake bots."""
