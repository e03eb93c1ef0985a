#!/usr/bin/env python3
"""
Motion Planning System Demonstration

Demonstrates the planning cascade on the RB3-730ES-U:
- Planning to named joint configurations
- Planning into a Task Space Region
- Planning under an end-effector orientation constraint
- Straight end-effector offsets
"""

import sys
import os
import numpy as np
import logging

# Add repository root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from kinematics.src.forward_kinematic import KinematicChain
from planning.src.motion_planner import MotionPlanner
from planning.src.rng import RNG
from planning.src.tsr import TSR

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger('planning_demo')


def print_result(title, planned):
    print(f"\n{title}")
    print("-" * 50)
    print(f"Status: {planned.status.value} (stage: {planned.stage})")
    print(f"Planning time: {planned.planning_time:.3f}s")
    if planned.trajectory is not None:
        trajectory = planned.trajectory
        end = trajectory.get_waypoint(trajectory.get_num_waypoints() - 1)
        print(f"Waypoints: {trajectory.get_num_waypoints()}, duration {trajectory.get_duration():.3f}")
        print(f"Final joints (deg): {np.round(np.rad2deg(end.values), 2)}")
    else:
        print(f"Reason: {planned.message}")


def demo_configuration_planning(planner):
    logger.info("=== Planning to Named Configurations ===")
    for name in planner.named_configurations:
        planned = planner.plan_to_named_configuration(name)
        print_result(f"Plan to '{name}'", planned)
        if planned.success:
            end = planned.trajectory.get_waypoint(planned.trajectory.get_num_waypoints() - 1)
            planner.skeleton.set_positions(end.values)


def demo_tsr_planning(planner):
    logger.info("\n=== Planning to a Task Space Region ===")
    T_current = planner.body_frame.get_world_transform()
    T0_w = T_current.copy()
    T0_w[:3, 3] += [0.05, 0.05, -0.05]

    Bw = np.zeros((6, 2))
    Bw[0] = [-0.02, 0.02]
    Bw[1] = [-0.02, 0.02]
    Bw[5] = [-np.pi, np.pi]
    planned = planner.plan_to_tsr(TSR(T0_w=T0_w, Bw=Bw))
    print_result("Plan into a 4cm square with free yaw", planned)


def demo_constrained_planning(planner):
    logger.info("\n=== Constrained Planning ===")
    T_current = planner.body_frame.get_world_transform()

    goal_pose = T_current.copy()
    goal_pose[:3, 3] += [0.0, 0.1, 0.0]
    goal_tsr = TSR(T0_w=goal_pose)

    # Keep the tool orientation within 0.1 rad while moving freely
    constraint_bounds = np.array([
        [-1.0, 1.0], [-1.0, 1.0], [-1.0, 1.0],
        [-0.1, 0.1], [-0.1, 0.1], [-0.1, 0.1],
    ])
    constraint_tsr = TSR(T0_w=T_current, Bw=constraint_bounds)
    planned = planner.plan_to_tsr_with_constraint(goal_tsr, constraint_tsr)
    print_result("Plan 10cm along y keeping orientation", planned)


def demo_offset_planning(planner):
    logger.info("\n=== End-Effector Offset Planning ===")
    planned = planner.plan_to_end_effector_offset([0.0, 0.0, -1.0], 0.05)
    print_result("Move 5cm straight down", planned)


def main():
    logger.info("=== Motion Planning System Demonstration ===")
    logger.info("="*60)
    try:
        chain = KinematicChain.from_config()
        planner = MotionPlanner(chain, rng=RNG(0))
        logger.info("Planner initialized")

        demo_configuration_planning(planner)
        demo_tsr_planning(planner)
        demo_constrained_planning(planner)
        demo_offset_planning(planner)

        stats = planner.get_statistics()
        logger.info("\n" + "="*60)
        logger.info("=== DEMONSTRATION SUMMARY ===")
        logger.info("="*60)
        logger.info(f"Plans: {stats['total_plans']}, successful: {stats['successful_plans']}")
        logger.info(f"Successful stages: {stats['stage_successes']}")
        print("\nMotion Planning System Demonstration Complete!")
    except Exception as e:
        logger.error(f"Demonstration failed: {e}")
        raise


if __name__ == "__main__":
    main()
