"""
Campus Catalog

Default virtual campus layout: the locations students can join, their
capacity, who may enter, and the activities that pay out XP inside them.
"""

from typing import List

from progression.models.avatar import Skill
from progression.models.campus import CampusActivity, CampusLocation, LocationAccess


def default_locations() -> List[CampusLocation]:
    """Fresh, empty copies of the default campus locations"""
    return [
        CampusLocation(
            id="entrance",
            name="Main Entrance",
            description="Welcome to the Virtual Learning Campus! Start your journey here.",
            type="entrance",
            capacity=100,
            activities=[
                CampusActivity("campus_tour", "Campus Tour", "Take a guided tour of the virtual campus", 25),
            ],
        ),
        CampusLocation(
            id="library",
            name="Digital Library",
            description="A quiet place for focused studying and research.",
            type="library",
            capacity=30,
            activities=[
                CampusActivity("focused_study", "Focused Study", "Study in a quiet environment with bonus XP", 50),
                CampusActivity("research_project", "Research Project", "Conduct research using the library resources", 100),
            ],
        ),
        CampusLocation(
            id="math_classroom",
            name="Mathematics Classroom",
            description="Interactive classroom for mathematics learning.",
            type="classroom",
            capacity=25,
            activities=[
                CampusActivity("math_lesson", "Math Lesson", "Attend an interactive mathematics lesson", 75, Skill.MATHEMATICS),
                CampusActivity("problem_solving", "Problem Solving", "Solve challenging math problems", 100, Skill.MATHEMATICS),
            ],
        ),
        CampusLocation(
            id="science_lab",
            name="Science Laboratory",
            description="Virtual laboratory for conducting experiments.",
            type="lab",
            capacity=20,
            access=LocationAccess.level_required(5),
            activities=[
                CampusActivity("chemistry_experiment", "Chemistry Experiment", "Conduct virtual chemistry experiments", 100, Skill.SCIENCE),
                CampusActivity("physics_simulation", "Physics Simulation", "Run physics simulations and experiments", 120, Skill.SCIENCE),
            ],
        ),
        CampusLocation(
            id="art_studio",
            name="Creative Art Studio",
            description="Express your creativity in this inspiring space.",
            type="art_studio",
            capacity=15,
            activities=[
                CampusActivity("digital_painting", "Digital Painting", "Create digital artwork", 60, Skill.ART),
                CampusActivity("music_composition", "Music Composition", "Compose original music", 80, Skill.MUSIC),
                CampusActivity("3d_sculpting", "3D Sculpting", "Create 3D digital sculptures", 100, Skill.ART),
            ],
        ),
        CampusLocation(
            id="cafeteria",
            name="Student Cafeteria",
            description="Social hub for meeting friends and relaxing.",
            type="cafeteria",
            capacity=40,
            activities=[
                CampusActivity("social_meeting", "Social Meeting", "Meet and chat with other students", 30),
                CampusActivity("group_study", "Group Study", "Study together with friends", 40),
            ],
        ),
        CampusLocation(
            id="garden",
            name="Peaceful Garden",
            description="A serene outdoor space for relaxation and reflection.",
            type="garden",
            capacity=25,
            activities=[
                CampusActivity("meditation", "Meditation", "Practice mindfulness and relaxation", 20),
                CampusActivity("nature_reading", "Nature Reading", "Read books in a peaceful environment", 35, Skill.ENGLISH),
            ],
        ),
        CampusLocation(
            id="gym",
            name="Virtual Gym",
            description="Stay active with virtual fitness activities.",
            type="gym",
            capacity=20,
            activities=[
                CampusActivity("cardio_workout", "Cardio Workout", "Virtual cardio exercise session", 40),
                CampusActivity("strength_training", "Strength Training", "Virtual strength training session", 50),
            ],
        ),
    ]
