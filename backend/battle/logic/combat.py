"""
Combat resolution for one turn.

Pure arithmetic over the two chosen cards, the turn's market signal and the
combatants' current effects:

1. Base damage is the card's damage (0 if it has none).
2. Attack cards are scaled by the market multiplier (floored) and, in a
   rising market, gain the flat bonus.
3. In a market falling by more than 5%, defense cards gain +10.
4. The first strength effect on the attacker adds its value; the first
   weakness effect subtracts its value (floored at 0). Later effects of the
   same type are ignored.

apply_turn_effects() then mutates both combatants: armor grants land first,
status templates go to the card player's opponent, HP damage is what gets
past current armor, and armor is finally reduced by the full incoming damage.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from battle.logic.enums import CardType, MarketDirection, StatusEffectType
from battle.logic.state import StatusEffect

if TYPE_CHECKING:
    from battle.logic.state import Card, Combatant, MarketSignal

FALLING_MARKET_THRESHOLD_PERCENT = 5.0
FALLING_MARKET_DEFENSE_BONUS = 10


@dataclass(frozen=True)
class DamageRoll:
    """Gross (pre-armor) damage each side deals this turn."""

    player_damage: int
    opponent_damage: int


@dataclass(frozen=True)
class CombatResult:
    roll: DamageRoll
    player_damage_taken: int
    opponent_damage_taken: int


def card_damage(card: Card, signal: MarketSignal, attacker: Combatant) -> int:
    """Gross damage the attacker deals with this card under this market signal."""
    damage = card.damage or 0
    effect = signal.game_effect

    if card.type == CardType.ATTACK:
        damage = math.floor(damage * effect.multiplier)
        if signal.direction == MarketDirection.UP:
            damage += effect.bonus_damage

    if (
        card.type == CardType.DEFENSE
        and signal.direction == MarketDirection.DOWN
        and abs(signal.change_percent) > FALLING_MARKET_THRESHOLD_PERCENT
    ):
        damage += FALLING_MARKET_DEFENSE_BONUS

    strength = attacker.find_effect(StatusEffectType.STRENGTH)
    if strength is not None:
        damage += strength.value
    weakness = attacker.find_effect(StatusEffectType.WEAKNESS)
    if weakness is not None:
        damage = max(0, damage - weakness.value)

    return damage


def calculate_damage(
    player_card: Card,
    opponent_card: Card,
    signal: MarketSignal,
    player: Combatant,
    opponent: Combatant,
) -> DamageRoll:
    return DamageRoll(
        player_damage=card_damage(player_card, signal, player),
        opponent_damage=card_damage(opponent_card, signal, opponent),
    )


def _apply_card_effects(owner: Combatant, target: Combatant, card: Card) -> None:
    if card.armor:
        owner.armor += card.armor
    if card.status_effect is not None:
        target.status_effects.append(StatusEffect.from_template(card.status_effect))


def apply_turn_effects(
    player: Combatant,
    opponent: Combatant,
    player_card: Card,
    opponent_card: Card,
    roll: DamageRoll,
) -> tuple[int, int]:
    """Apply armor, effects and damage to both combatants.

    Returns the HP actually lost by (player, opponent).
    """
    _apply_card_effects(player, opponent, player_card)
    _apply_card_effects(opponent, player, opponent_card)

    player_taken = max(0, roll.opponent_damage - player.armor)
    opponent_taken = max(0, roll.player_damage - opponent.armor)

    player.hp = max(0, player.hp - player_taken)
    opponent.hp = max(0, opponent.hp - opponent_taken)

    # Armor is consumed by the full incoming damage, not just the blocked part.
    player.armor = max(0, player.armor - roll.opponent_damage)
    opponent.armor = max(0, opponent.armor - roll.player_damage)

    return player_taken, opponent_taken


def resolve_combat(
    player: Combatant,
    opponent: Combatant,
    player_card: Card,
    opponent_card: Card,
    signal: MarketSignal,
) -> CombatResult:
    """Compute this turn's damage and apply it to both combatants."""
    roll = calculate_damage(player_card, opponent_card, signal, player, opponent)
    player_taken, opponent_taken = apply_turn_effects(player, opponent, player_card, opponent_card, roll)
    return CombatResult(roll=roll, player_damage_taken=player_taken, opponent_damage_taken=opponent_taken)
