"""Recruiter graph: who recruited whom.

The recruiter relation is meant to be a tree (one recruiter per agent, no
cycles) but the column is a plain self-reference, so every walk upward is
bounded and checks for revisited agents.
"""
import logging
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy.orm import Session

from brokerage.core.config import settings
from brokerage.core.exceptions import CycleDetectedError, NotFoundError, ValidationError
from brokerage.models.agent import Agent

logger = logging.getLogger(__name__)


class RecruiterGraphResolver:
    def __init__(self, db: Session):
        self.db = db

    def get_agent(self, agent_id: int) -> Agent:
        agent = self.db.get(Agent, agent_id)
        if not agent:
            raise NotFoundError(f"Agent not found: {agent_id}")
        return agent

    def get_upline(self, agent_id: int) -> Optional[Agent]:
        """Direct recruiter of an agent, or None at the root."""
        agent = self.get_agent(agent_id)
        if agent.recruited_by_id is None:
            return None
        return self._load_recruiter(agent)

    def get_downline(self, agent_id: int) -> List[Agent]:
        """Agents directly recruited by this agent."""
        self.get_agent(agent_id)
        return (
            self.db.query(Agent)
            .filter(Agent.recruited_by_id == agent_id)
            .order_by(Agent.id)
            .all()
        )

    def count_downline(self, agent_id: int) -> int:
        return self.db.query(Agent).filter(Agent.recruited_by_id == agent_id).count()

    def walk_upline_chain(self, agent_id: int, max_depth: int = None) -> Iterator[Agent]:
        """
        Yield recruiters from the immediate one upward, stopping at the root
        or after max_depth hops. Raises CycleDetectedError if an agent shows
        up twice on the way (the starting agent included).
        """
        if max_depth is None:
            max_depth = settings.MAX_UPLINE_DEPTH

        current = self.get_agent(agent_id)
        chain = [current.id]
        visited = {current.id}

        for _ in range(max_depth):
            recruiter_id = current.recruited_by_id
            if recruiter_id is None:
                return

            if recruiter_id in visited:
                chain.append(recruiter_id)
                logger.error(
                    f"Recruiter cycle detected walking upline of agent {agent_id}: "
                    f"{' -> '.join(str(i) for i in chain)}"
                )
                raise CycleDetectedError(
                    f"Recruiter graph cycle: agent {recruiter_id} appears twice in the upline "
                    f"of agent {agent_id}; the recruiter graph needs manual cleanup",
                    chain=chain,
                )

            current = self._load_recruiter(current)
            chain.append(current.id)
            visited.add(current.id)
            yield current

    def upline_chain(self, agent_id: int, max_depth: int = None) -> List[Agent]:
        return list(self.walk_upline_chain(agent_id, max_depth))

    def assign_recruiter(self, agent_id: int, recruiter_id: int) -> Agent:
        """
        Set an agent's recruiter. Recruiter assignment is permanent, and an
        assignment that would close a loop in the graph is refused.
        Caller commits.
        """
        if agent_id == recruiter_id:
            raise CycleDetectedError("Agent cannot recruit themselves", chain=[agent_id, agent_id])

        agent = self.get_agent(agent_id)
        recruiter = self.get_agent(recruiter_id)

        if agent.recruited_by_id is not None:
            if agent.recruited_by_id == recruiter_id:
                return agent
            raise ValidationError(
                f"Agent {agent_id} already has recruiter {agent.recruited_by_id}; re-parenting is not supported"
            )

        # The new recruiter's upline must not contain the agent. Walk the
        # whole chain: a depth-limited walk could miss a distant loop.
        hops = 0
        for ancestor in self.walk_upline_chain(recruiter.id, max_depth=self._agent_count()):
            hops += 1
            if ancestor.id == agent_id:
                raise CycleDetectedError(
                    f"Assigning agent {recruiter_id} as recruiter of agent {agent_id} would create a cycle",
                    chain=[agent_id, recruiter_id],
                )

        agent.recruited_by_id = recruiter.id
        agent.recruited_at = datetime.now(timezone.utc)
        self.db.flush()

        logger.info(f"Agent {agent_id} recruited by agent {recruiter_id} (upline depth {hops + 1})")
        return agent

    def _agent_count(self) -> int:
        return max(self.db.query(Agent).count(), 1)

    def _load_recruiter(self, agent: Agent) -> Agent:
        recruiter = self.db.get(Agent, agent.recruited_by_id)
        if not recruiter:
            raise NotFoundError(
                f"Recruiter {agent.recruited_by_id} of agent {agent.id} does not exist"
            )
        return recruiter
