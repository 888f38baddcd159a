"""
End-of-turn status effect processing.

Runs once per resolved turn for each combatant, after the win check:
poison deals its value, then every effect loses one turn of duration and
effects that reach zero are dropped.
"""

from battle.logic.enums import StatusEffectType
from battle.logic.state import Combatant, StatusEffect


def tick_status_effects(combatant: Combatant) -> int:
    """Apply one turn of effects to a combatant. Returns the poison damage dealt."""
    poison_damage = 0
    remaining: list[StatusEffect] = []

    for effect in combatant.status_effects:
        if effect.type == StatusEffectType.POISON:
            before = combatant.hp
            combatant.hp = max(0, combatant.hp - effect.value)
            poison_damage += before - combatant.hp
        duration = effect.duration - 1
        if duration > 0:
            remaining.append(effect.model_copy(update={"duration": duration}))

    combatant.status_effects = remaining
    return poison_damage
