#!/usr/bin/env python3
"""
Alert creation dialogue.

    /alert -> AWAITING_COIN -> AWAITING_CONDITION -> AWAITING_PRICE
           -> AWAITING_CONFIRMATION -> confirm (alert saved) | edit | cancel

One dialogue per owner; /alert always starts over. Selections that do not
match the owner's current step raise StaleSelection and change nothing.
"""
import logging
from typing import Dict, List, Optional

from config import MAX_ALERT_CHOICES
from errors import BotError, InvalidInput, StaleSelection
from gateway import MarketDataGateway
from models import Alert, CoinDetail, Condition, DialogueState, DialogueStep
from storage import AlertStore
from utils import validate_price

logger = logging.getLogger(__name__)


class DialogueStore:
    """In-memory owner -> DialogueState mapping."""

    def __init__(self):
        self._states: Dict[str, DialogueState] = {}

    def get(self, owner: str) -> Optional[DialogueState]:
        return self._states.get(str(owner))

    def set(self, owner: str, state: DialogueState) -> None:
        self._states[str(owner)] = state

    def clear(self, owner: str) -> bool:
        return self._states.pop(str(owner), None) is not None

    def __contains__(self, owner) -> bool:
        return str(owner) in self._states

    def __len__(self) -> int:
        return len(self._states)


class AlertDialogue:
    """Turns keyboard selections and one price message into a saved Alert."""

    def __init__(self, states: DialogueStore, gateway: MarketDataGateway, store: AlertStore):
        self.states = states
        self.gateway = gateway
        self.store = store

    def _expect(self, owner: str, step: DialogueStep, coin: Optional[str] = None) -> DialogueState:
        state = self.states.get(owner)
        if state is None or state.step != step or (coin is not None and state.coin != coin):
            logger.info(f"Stale selection from {owner}: expected {step.name} for {coin}, have {state}")
            raise StaleSelection("This selection has expired")
        return state

    async def candidate_coins(self, owner: str) -> List[str]:
        """Favorites first, then the top coins, without duplicates."""
        favorites = await self.store.list_favorites(owner)
        top_coins = await self.gateway.get_top_coins()

        candidates = list(dict.fromkeys(favorites + [coin.id for coin in top_coins]))
        return candidates[:MAX_ALERT_CHOICES]

    async def start(self, owner: str) -> List[str]:
        """
        Starts a new dialogue, discarding any dialogue in progress.
        Returns the coins to offer; an empty list means nothing can be offered.
        """
        candidates = await self.candidate_coins(owner)
        if not candidates:
            self.states.clear(owner)
            return []

        self.states.set(owner, DialogueState(step=DialogueStep.AWAITING_COIN))
        logger.info(f"Alert dialogue started for {owner} with {len(candidates)} coin(s)")
        return candidates

    async def select_coin(self, owner: str, coin: str) -> Optional[CoinDetail]:
        """
        Moves to AWAITING_CONDITION for coin.
        Returns the coin details, or None when they could not be fetched.
        """
        self._expect(owner, DialogueStep.AWAITING_COIN)
        self.states.set(owner, DialogueState(step=DialogueStep.AWAITING_CONDITION, coin=coin))

        try:
            return await self.gateway.get_coin(coin)
        except BotError as e:
            logger.warning(f"Error fetching coin data for alert on {coin}: {e}")
            return None

    def select_condition(self, owner: str, coin: str, condition: Condition) -> DialogueState:
        self._expect(owner, DialogueStep.AWAITING_CONDITION, coin)
        state = DialogueState(step=DialogueStep.AWAITING_PRICE, coin=coin, condition=condition)
        self.states.set(owner, state)
        return state

    def enter_price(self, owner: str, text: str) -> Optional[Alert]:
        """
        Handles a plain message while a price is awaited.
        Returns None if the owner is not waiting for a price (message not consumed),
        otherwise the unsaved alert to confirm. Raises InvalidInput for a bad price.
        """
        state = self.states.get(owner)
        if state is None or state.step != DialogueStep.AWAITING_PRICE:
            return None

        is_valid, price, error = validate_price(text)
        if not is_valid:
            raise InvalidInput(error)

        draft = Alert(owner=owner, coin=state.coin, condition=state.condition, price=price)
        self.states.set(owner, DialogueState(
            step=DialogueStep.AWAITING_CONFIRMATION, coin=state.coin, condition=state.condition
        ))
        return draft

    async def confirm(self, owner: str, condition: Condition, price: float) -> Alert:
        """Saves the drafted alert for the coin held in the dialogue state."""
        state = self._expect(owner, DialogueStep.AWAITING_CONFIRMATION)
        if state.condition != condition:
            raise StaleSelection("This selection has expired")

        alert = Alert(owner=owner, coin=state.coin, condition=condition, price=price)
        # Cleared before saving so a repeated confirm finds no dialogue
        self.states.clear(owner)
        return await self.store.add_alert(alert)

    def edit(self, owner: str, coin: str) -> DialogueState:
        self._expect(owner, DialogueStep.AWAITING_CONFIRMATION, coin)
        state = DialogueState(step=DialogueStep.AWAITING_CONDITION, coin=coin)
        self.states.set(owner, state)
        return state

    def cancel(self, owner: str) -> bool:
        cancelled = self.states.clear(owner)
        if cancelled:
            logger.info(f"Alert dialogue cancelled by {owner}")
        return cancelled

    async def create_alert(self, owner: str, coin: str, condition: str, price: str) -> Alert:
        """One-shot `coin operator price` alert, bypassing the dialogue."""
        parsed_condition = Condition.parse(condition)
        is_valid, parsed_price, error = validate_price(price)
        if not is_valid:
            raise InvalidInput(error)

        alert = Alert(owner=owner, coin=coin, condition=parsed_condition, price=parsed_price)
        # Raises CoinNotFound for unknown coins
        await self.gateway.get_coin(alert.coin)
        return await self.store.add_alert(alert)
