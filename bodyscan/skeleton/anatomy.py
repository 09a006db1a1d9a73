#!/usr/bin/env python3
"""
Anatomical lookup tables for the 25-joint body tracking skeleton.

Fixed tables relating joints, bones and points of interest (POIs) to the
21 anatomical groups and the 5 texture regions used for atlas packing:
- Joint and bone naming / joint-pair definitions
- POI to anatomical group mapping (49 entries)
- Reference POI per group (the origin of its submesh)
- Group to texture region mapping and per-region POI groupings
- Vertical/horizontal orientation flags used to pick the seam axis

Author: Body Scan Team
"""

from enum import IntEnum
from typing import List, Tuple

JOINT_COUNT = 25
BONE_COUNT = 24
POI_COUNT = JOINT_COUNT + BONE_COUNT
GROUP_COUNT = 21
TEXTURE_REGION_COUNT = 5

JOINT_NAMES: Tuple[str, ...] = (
    "SpineBase", "SpineMid", "Neck", "Head",
    "ShoulderLeft", "ElbowLeft", "WristLeft", "HandLeft",
    "ShoulderRight", "ElbowRight", "WristRight", "HandRight",
    "HipLeft", "KneeLeft", "AnkleLeft", "FootLeft",
    "HipRight", "KneeRight", "AnkleRight", "FootRight",
    "SpineShoulder", "HandTipLeft", "ThumbLeft", "HandTipRight", "ThumbRight",
)

# (child joint, parent joint) for every bone
BONE_JOINTS: Tuple[Tuple[int, int], ...] = (
    (1, 0), (2, 20), (3, 2), (4, 20), (5, 4), (6, 5), (7, 6), (8, 20), (9, 8),
    (10, 9), (11, 10), (12, 0), (13, 12), (14, 13), (15, 14), (16, 0), (17, 16),
    (18, 17), (19, 18), (20, 1), (21, 7), (22, 7), (23, 11), (24, 11),
)

BONE_NAMES: Tuple[str, ...] = tuple(
    f"{JOINT_NAMES[a]}To{JOINT_NAMES[b]}" for a, b in BONE_JOINTS
)

POI_NAMES: Tuple[str, ...] = JOINT_NAMES + BONE_NAMES

JOINT_MESH_VERTICAL: Tuple[bool, ...] = (
    True, True, True, True, False, False, False, False, False, False, False, False,
    True, True, True, True, True, True, True, True, True, False, False, False, False,
)

BONE_MESH_VERTICAL: Tuple[bool, ...] = (
    True, True, True, False, False, False, False, False, False, False, False,
    True, True, True, True, True, True, True, True, True, False, False, False, False,
)

# Bones whose yaw is taken from a joint's yaw instead of the bone direction
SPINE_BONE_YAW_JOINTS = {0: 0, 1: 20, 2: 2, 19: 1}

# Spine joints rebuilt from offsets when mirroring a back scan skeleton
CENTRE_JOINTS: Tuple[int, ...] = (0, 1, 20, 2, 3)

# Joint order of a skeleton seen from behind (left and right swapped)
REVERSE_JOINT_ORDER: Tuple[int, ...] = (
    0, 1, 2, 3, 8, 9, 10, 11, 4, 5, 6, 7, 16, 17, 18, 19, 12, 13, 14, 15, 20, 23, 24, 21, 22,
)


class AnatomicalGroup(IntEnum):
    """The 21 body segments a scan is split into."""
    LOWER_TORSO = 0
    HEAD = 1
    LEFT_SHOULDER = 2
    LEFT_ELBOW = 3
    LEFT_HAND = 4
    RIGHT_SHOULDER = 5
    RIGHT_ELBOW = 6
    RIGHT_HAND = 7
    LEFT_KNEE = 8
    LEFT_FOOT = 9
    RIGHT_KNEE = 10
    RIGHT_FOOT = 11
    UPPER_TORSO = 12
    LEFT_SHOULDER_TO_ELBOW = 13
    LEFT_ELBOW_TO_HAND = 14
    RIGHT_SHOULDER_TO_ELBOW = 15
    RIGHT_ELBOW_TO_HAND = 16
    LEFT_HIP_TO_KNEE = 17
    LEFT_KNEE_TO_ANKLE = 18
    RIGHT_HIP_TO_KNEE = 19
    RIGHT_KNEE_TO_ANKLE = 20


class TextureRegion(IntEnum):
    """Coarse regions, one texture atlas and one linking mesh each."""
    MAIN_BODY = 0
    HEAD_AND_NECK = 1
    LEFT_ARM = 2
    RIGHT_ARM = 3
    LEGS = 4


GROUP_NAMES: Tuple[str, ...] = (
    "LowerTorso", "Head", "LeftShoulder", "LeftElbow", "LeftHand",
    "RightShoulder", "RightElbow", "RightHand",
    "LeftKnee", "LeftFoot", "RightKnee", "RightFoot", "UpperTorso",
    "LeftShoulderToElbow", "LeftElbowToHand", "RightShoulderToElbow", "RightElbowToHand",
    "LeftHipToKnee", "LeftKneeToAnkle", "RightHipToKnee", "RightKneeToAnkle",
)

TEXTURE_REGION_NAMES: Tuple[str, ...] = ("MainBody", "HeadAndNeck", "LeftArm", "RightArm", "Legs")

# POI index -> anatomical group
POI_TO_GROUP: Tuple[int, ...] = (
    0, 12, 1, 1, 2, 3, 4, 4, 5, 6, 7, 7, 0, 8, 9, 9, 0, 10, 11, 11, 12, 4, 4, 7, 7,
    0, 12, 1, 12, 13, 14, 4, 12, 15, 16, 7, 0, 17, 18, 9, 0, 19, 20, 11, 12, 4, 4, 7, 7,
)

# Anatomical group -> POI whose position is the group origin
GROUP_POIS: Tuple[int, ...] = (
    25, 27, 4, 5, 31, 8, 9, 35, 13, 39, 17, 43, 44, 29, 30, 33, 34, 37, 38, 41, 42,
)

# Anatomical group -> texture region
GROUP_TEXTURE_REGION: Tuple[int, ...] = (
    0, 1, 2, 2, 2, 3, 3, 3, 4, 4, 4, 4, 0, 2, 2, 3, 3, 4, 4, 4, 4,
)

# Texture region -> POIs whose vertex UVs bound the region's texture crop
TEXTURE_REGION_POIS: Tuple[Tuple[int, ...], ...] = (
    (0, 1, 12, 16, 20, 25, 26, 28, 36, 40, 44, 32),
    (2, 3, 26, 27),
    (4, 5, 6, 7, 21, 22, 28, 29, 30, 31, 45, 46),
    (8, 9, 10, 11, 23, 24, 32, 33, 34, 35, 47, 48),
    (12, 13, 14, 15, 16, 17, 18, 19, 37, 38, 40, 41, 42, 43),
)

# The lower torso / legs seam is textured from the legs atlas
SEAM_REGION_OVERRIDES = {frozenset((TextureRegion.MAIN_BODY, TextureRegion.LEGS)): TextureRegion.LEGS}


def is_poi_vertical(poi: int) -> bool:
    """True if the mesh around ``poi`` is oriented along the body's vertical axis."""
    if not 0 <= poi < POI_COUNT:
        raise ValueError(f"POI index {poi} out of range 0..{POI_COUNT - 1}")
    if poi < JOINT_COUNT:
        return JOINT_MESH_VERTICAL[poi]
    return BONE_MESH_VERTICAL[poi - JOINT_COUNT]


def is_group_vertical(group: int) -> bool:
    """Orientation flag of a group, taken from its reference POI."""
    return is_poi_vertical(GROUP_POIS[group])


def groups_for_region(region: int) -> List[int]:
    """Anatomical groups textured from ``region``."""
    return [g for g, r in enumerate(GROUP_TEXTURE_REGION) if r == region]


def seam_texture_region(regions) -> TextureRegion:
    """
    Texture region used for a triangle cut by the segmentation.

    Args:
        regions: Texture regions of the triangle's three vertices

    Returns:
        The shared region when all agree, the override for known seam pairs,
        and the main body region otherwise
    """
    distinct = frozenset(int(r) for r in regions)
    if len(distinct) == 1:
        return TextureRegion(next(iter(distinct)))
    return SEAM_REGION_OVERRIDES.get(distinct, TextureRegion.MAIN_BODY)
